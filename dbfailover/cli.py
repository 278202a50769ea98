"""
Point d'entrée de l'orchestrateur.

Usage:
    dbfailover --config /etc/dbfailover/cluster.yaml
    dbfailover --config cluster.yaml --once
    dbfailover --config cluster.yaml --failover "planned maintenance"

Variables d'environnement obligatoires: <REF>_USER / <REF>_PASSWORD pour
chaque credentials_ref déclaré, et la zone DNS (HOSTED_ZONE_ID par défaut).
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Mapping, Optional, Sequence

from dbfailover.adapters import (
    AuroraGlobalClusterAdmin,
    ConfigMapStore,
    DynamoDbLeaseLock,
    PagerDutyChannel,
    PostgresClient,
    RdsClusterDirectory,
    Route53RecordUpdater,
    SlackWebhookChannel,
    load_kube_config,
)
from dbfailover.audit import FailoverAuditLog
from dbfailover.core import (
    ConfigIntegrityError,
    ConfigLoader,
    CryptoProvider,
    EnvironmentCredentials,
    MissingCredentialError,
    OrchestratorSettings,
)
from dbfailover.ha import (
    CandidateSelector,
    ConfigPropagator,
    FailoverController,
    FailoverOutcome,
    FileClusterDirectory,
    HealthProber,
    IClusterDirectory,
    ILeaseLock,
    INotificationChannel,
    LagEvaluator,
    LocalLeaseLock,
    Notifier,
    Promoter,
    Validator,
    entries_from_settings,
)
from dbfailover.logging import (
    FileOutputHandler,
    LogConfig,
    LogLevel,
    StructuredLogger,
    stream_output_handler,
)
from dbfailover.network import RetryConfig, RetryHandler, TimeoutConfig, TimeoutManager

EXIT_OK = 0
EXIT_FAILOVER_FAILED = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbfailover",
        description="Multi-region database failover orchestrator",
    )
    parser.add_argument("--config", "-c", required=True, help="Orchestrator YAML configuration")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run a single monitoring cycle and exit")
    mode.add_argument("--failover", metavar="REASON", help="Run an operator-initiated failover and exit")
    parser.add_argument("--log-file", help="Append JSON log lines to this file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARN, ERROR or CRITICAL")
    return parser


def required_environment(settings: OrchestratorSettings) -> List[str]:
    """Variables à vérifier avant le démarrage de la boucle."""
    names = [settings.propagation.hosted_zone_env]
    for ref in sorted({region.credentials_ref for region in settings.cluster.regions}):
        names.extend([f"{ref}_USER", f"{ref}_PASSWORD"])
    return names


def build_logger(
    settings: OrchestratorSettings,
    log_file: Optional[str] = None,
    level: Optional[str] = None,
) -> StructuredLogger:
    config = LogConfig(
        min_level=LogLevel.parse(level or settings.logging.level),
        default_cluster_id=settings.cluster.cluster_id,
    )
    logger = StructuredLogger("dbfailover", config=config, output_handlers=[stream_output_handler()])
    path = log_file or settings.logging.file
    if path:
        logger.add_output_handler(FileOutputHandler(path))
    return logger


def build_timeouts(settings: OrchestratorSettings) -> TimeoutManager:
    return TimeoutManager(
        TimeoutConfig(
            probe_timeout=settings.monitoring.probe_timeout_seconds,
            lag_timeout=settings.monitoring.lag_timeout_seconds,
            promotion_timeout=settings.promotion.timeout_seconds,
            propagation_timeout=settings.propagation.timeout_seconds,
            validation_timeout=settings.validation.timeout_seconds,
            notification_timeout=settings.notifications.timeout_seconds,
        )
    )


def build_channels(
    settings: OrchestratorSettings, credentials: EnvironmentCredentials
) -> List[INotificationChannel]:
    """Canaux dont le secret est présent dans l'environnement."""
    notifications = settings.notifications
    channels: List[INotificationChannel] = []

    webhook = credentials.get(notifications.slack_webhook_env)
    if webhook:
        channels.append(SlackWebhookChannel(webhook, timeout_seconds=notifications.timeout_seconds))

    routing_key = credentials.get(notifications.pagerduty_routing_key_env)
    if routing_key:
        channels.append(
            PagerDutyChannel(
                routing_key,
                source=notifications.source,
                timeout_seconds=notifications.timeout_seconds,
            )
        )
    return channels


def build_directory(settings: OrchestratorSettings, config_path: str) -> IClusterDirectory:
    if settings.cluster.directory == "rds":
        return RdsClusterDirectory(settings.cluster.cluster_id, entries_from_settings(settings))
    return FileClusterDirectory(config_path)


def build_lease_lock(settings: OrchestratorSettings) -> ILeaseLock:
    lease = settings.lease
    if not lease.table_name:
        return LocalLeaseLock()
    return DynamoDbLeaseLock(
        lease.table_name,
        lock_id=settings.cluster.cluster_id,
        ttl_seconds=lease.ttl_seconds,
        region_name=lease.aws_region,
    )


def build_controller(
    settings: OrchestratorSettings,
    config_path: str,
    logger: StructuredLogger,
    environ: Optional[Mapping[str, str]] = None,
) -> FailoverController:
    """
    Assemble le contrôleur et ses adapters depuis la configuration.

    Raises:
        MissingCredentialError: Variable d'environnement obligatoire absente
    """
    credentials = EnvironmentCredentials(environ)
    credentials.require(required_environment(settings))
    timeouts = build_timeouts(settings)

    database = PostgresClient(
        credentials,
        connect_timeout=int(settings.monitoring.probe_timeout_seconds),
        validation_table=settings.validation.table,
    )
    prober = HealthProber(database, logger, timeouts)
    selector = CandidateSelector(
        prober,
        LagEvaluator(database, logger, timeouts),
        logger,
        max_staleness_seconds=settings.selection.max_staleness_seconds,
    )

    promotion = settings.promotion
    admin = AuroraGlobalClusterAdmin(
        settings.cluster.global_cluster_identifier or settings.cluster.cluster_id,
        managed_failover=promotion.managed_failover,
        promoted_global_cluster_identifier=promotion.promoted_global_cluster_identifier,
        cluster_id=settings.cluster.cluster_id,
    )
    ack_config = RetryConfig(
        max_attempts=promotion.ack_max_attempts,
        initial_delay=promotion.ack_initial_delay_seconds,
        max_delay=promotion.ack_max_delay_seconds,
        retryable_exceptions=(Exception,),
    )
    promoter = Promoter(admin, logger, RetryHandler(), ack_config, timeouts)

    propagation = settings.propagation
    load_kube_config(in_cluster=propagation.in_cluster)
    propagator = ConfigPropagator(
        ConfigMapStore(
            namespace=propagation.namespace,
            configmap=propagation.configmap,
            restart_deployments=propagation.restart_deployments,
        ),
        Route53RecordUpdater(credentials.get(propagation.hosted_zone_env), propagation.record_name),
        logger,
        ttl_seconds=propagation.ttl_seconds,
        timeouts=timeouts,
    )

    notifier = Notifier(build_channels(settings, credentials), logger, timeouts)
    if not notifier.channels:
        logger.warn("No notification channel configured, events are only logged")

    if settings.audit.signing_key_path:
        crypto = CryptoProvider.from_pem_file(FailoverAuditLog.DEFAULT_KEY_ID, settings.audit.signing_key_path)
    else:
        crypto = CryptoProvider()
        logger.warn("No audit signing key configured, using an ephemeral key")

    return FailoverController(
        directory=build_directory(settings, config_path),
        prober=prober,
        selector=selector,
        promoter=promoter,
        propagator=propagator,
        validator=Validator(database, logger, timeouts),
        notifier=notifier,
        audit_log=FailoverAuditLog(crypto, path=settings.audit.log_path),
        logger=logger,
        lease_lock=build_lease_lock(settings),
        failure_threshold=settings.monitoring.failure_threshold,
        poll_interval_seconds=settings.monitoring.poll_interval_seconds,
    )


def _exit_code(outcome: Optional[FailoverOutcome]) -> int:
    if outcome is None or outcome == FailoverOutcome.SUCCEEDED:
        return EXIT_OK
    return EXIT_FAILOVER_FAILED


async def run(args: argparse.Namespace) -> int:
    try:
        settings = await ConfigLoader().load(args.config)
    except ConfigIntegrityError as e:
        print(f"dbfailover: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger = build_logger(settings, args.log_file, args.log_level)
    try:
        controller = build_controller(settings, args.config, logger)
    except MissingCredentialError as e:
        logger.critical("Startup environment incomplete", missing=e.names)
        return EXIT_CONFIG_ERROR

    if args.once:
        event = await controller.run_cycle()
        return _exit_code(event.outcome if event else None)

    if args.failover:
        await controller.initialize()
        event = await controller.run_failover(args.failover)
        if event is None:
            return EXIT_FAILOVER_FAILED
        return _exit_code(event.outcome)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, controller.request_shutdown)
    await controller.run()
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
