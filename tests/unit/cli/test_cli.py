"""
Tests unitaires du point d'entrée (parsing, assemblage, codes de sortie).
"""

import pytest

from dbfailover.adapters import DynamoDbLeaseLock, PagerDutyChannel, SlackWebhookChannel
from dbfailover.cli import (
    EXIT_CONFIG_ERROR,
    build_channels,
    build_lease_lock,
    build_logger,
    build_parser,
    build_timeouts,
    main,
    required_environment,
)
from dbfailover.core import ConfigLoader, EnvironmentCredentials
from dbfailover.ha import LocalLeaseLock
from dbfailover.logging import LogLevel
from dbfailover.network import TimeoutType


@pytest.fixture
def settings(valid_cluster_config):
    return ConfigLoader().parse(valid_cluster_config)


class TestParser:
    def test_config_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_once_and_failover_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-c", "x.yaml", "--once", "--failover", "maintenance"])

    def test_failover_reason(self):
        args = build_parser().parse_args(["--config", "x.yaml", "--failover", "planned maintenance"])

        assert args.failover == "planned maintenance"
        assert args.once is False


class TestWiring:
    def test_required_environment(self, valid_cluster_config):
        valid_cluster_config["cluster"]["regions"][2]["credentials_ref"] = "EU_DB"
        settings = ConfigLoader().parse(valid_cluster_config)

        assert required_environment(settings) == [
            "HOSTED_ZONE_ID",
            "DB_USER",
            "DB_PASSWORD",
            "EU_DB_USER",
            "EU_DB_PASSWORD",
        ]

    def test_channels_from_environment(self, settings):
        credentials = EnvironmentCredentials(
            {"SLACK_WEBHOOK_URL": "https://hooks.slack.com/x", "PAGERDUTY_ROUTING_KEY": "key"}
        )

        channels = build_channels(settings, credentials)

        assert [type(c) for c in channels] == [SlackWebhookChannel, PagerDutyChannel]

    def test_no_channels(self, settings):
        assert build_channels(settings, EnvironmentCredentials({})) == []

    def test_local_lease_by_default(self, settings):
        assert isinstance(build_lease_lock(settings), LocalLeaseLock)

    def test_dynamodb_lease(self, valid_cluster_config):
        valid_cluster_config["lease"] = {"table_name": "dbfailover-locks", "aws_region": "us-east-1"}
        settings = ConfigLoader().parse(valid_cluster_config)

        lock = build_lease_lock(settings)

        assert isinstance(lock, DynamoDbLeaseLock)
        assert lock.lock_id == "orders"

    def test_timeouts(self, settings):
        timeouts = build_timeouts(settings)

        assert timeouts.get_timeout(TimeoutType.PROBE) == 5.0
        assert timeouts.get_timeout(TimeoutType.PROMOTION) == 600.0

    def test_logger(self, settings, tmp_path):
        logger = build_logger(settings, log_file=str(tmp_path / "dbfailover.log"), level="warning")

        assert logger.config.min_level == LogLevel.WARN
        assert logger.config.default_cluster_id == "orders"


class TestExitCodes:
    def test_missing_config(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "absent.yaml"), "--once"])

        assert code == EXIT_CONFIG_ERROR
        assert "Configuration not found" in capsys.readouterr().err

    def test_missing_environment(self, fixtures_path, monkeypatch):
        for name in ("HOSTED_ZONE_ID", "DB_USER", "DB_PASSWORD"):
            monkeypatch.delenv(name, raising=False)

        code = main(["--config", str(fixtures_path / "configs" / "valid_minimal.yaml"), "--once"])

        assert code == EXIT_CONFIG_ERROR
