"""
Failover Controller

Machine à états qui surveille le primaire et orchestre le failover:

    Monitoring → Detecting → SelectingCandidate → Promoting → Propagating
        → Validating → Stable | Failed → Monitoring

Règles de mise à jour du ClusterState:
    - Stable: la cible devient primaire, génération + 1
    - aborted_no_candidate, promotion_failed: état inchangé
    - propagation_failed, validation_failed: la promotion a eu lieu, l'état
      adopte le nouveau primaire (génération + 1) et une alerte critique
      demande une intervention manuelle

Une seule boucle séquentielle: un failover en cours n'est jamais annulé
par l'arrêt, l'arrêt est observé entre deux cycles.
"""

import asyncio
import socket
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional, Tuple

from dbfailover.audit.interfaces import AuditLogError, IAuditLog
from dbfailover.ha.interfaces import (
    ClusterState,
    ControllerState,
    FailoverError,
    FailoverEvent,
    FailoverOutcome,
    ICandidateSelector,
    IClusterDirectory,
    IConfigPropagator,
    IHealthProber,
    ILeaseLock,
    INotifier,
    IPromoter,
    IValidator,
    NoEligibleCandidateError,
    PromotionError,
    PropagationError,
    Severity,
    StateTransition,
)
from dbfailover.ha.lease_lock import LocalLeaseLock
from dbfailover.logging import IStructuredLogger


def default_owner_id() -> str:
    """Identifiant du processus pour le bail: hostname + suffixe aléatoire."""
    return f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"


class FailoverController:
    """
    Boucle de surveillance et orchestration du failover.

    Example:
        controller = FailoverController(directory, prober, selector, promoter,
                                        propagator, validator, notifier, audit, logger)
        await controller.run(shutdown_event)
    """

    DEFAULT_FAILURE_THRESHOLD: int = 3
    DEFAULT_POLL_INTERVAL_SECONDS: float = 30.0
    MAX_TRANSITIONS: int = 500

    def __init__(
        self,
        directory: IClusterDirectory,
        prober: IHealthProber,
        selector: ICandidateSelector,
        promoter: IPromoter,
        propagator: IConfigPropagator,
        validator: IValidator,
        notifier: INotifier,
        audit_log: IAuditLog,
        logger: IStructuredLogger,
        lease_lock: Optional[ILeaseLock] = None,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        owner_id: Optional[str] = None,
    ) -> None:
        """
        Raises:
            ValueError: Seuil d'échecs < 1 ou intervalle de polling <= 0
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")

        self._directory = directory
        self._prober = prober
        self._selector = selector
        self._promoter = promoter
        self._propagator = propagator
        self._validator = validator
        self._notifier = notifier
        self._audit = audit_log
        self._logger = logger
        self._lock = lease_lock or LocalLeaseLock()
        self._failure_threshold = failure_threshold
        self._poll_interval = poll_interval_seconds
        self._owner_id = owner_id or default_owner_id()

        self._state = ControllerState.MONITORING
        self._cluster: Optional[ClusterState] = None
        self._failures = 0
        self._failover_in_progress = False
        self._transitions: Deque[StateTransition] = deque(maxlen=self.MAX_TRANSITIONS)
        self._shutdown = asyncio.Event()

    # ══════════════════════════════════════════════════════════════════════════
    # ÉTAT
    # ══════════════════════════════════════════════════════════════════════════

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def cluster_state(self) -> Optional[ClusterState]:
        """Dernier instantané (None avant initialize)."""
        return self._cluster

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    @property
    def poll_interval_seconds(self) -> float:
        return self._poll_interval

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def transitions(self) -> List[StateTransition]:
        return list(self._transitions)

    def is_failover_in_progress(self) -> bool:
        return self._failover_in_progress

    def _transition(
        self,
        state: ControllerState,
        region: Optional[str] = None,
        outcome: Optional[str] = None,
    ) -> None:
        self._state = state
        transition = StateTransition(
            state=state,
            at=datetime.now(timezone.utc),
            region=region,
            outcome=outcome,
        )
        self._transitions.append(transition)
        self._logger.info(
            "Controller state transition",
            state=state.value,
            region=region,
            outcome=outcome,
        )

    # ══════════════════════════════════════════════════════════════════════════
    # SURVEILLANCE
    # ══════════════════════════════════════════════════════════════════════════

    async def initialize(self) -> ClusterState:
        """
        Construit le ClusterState initial (génération 0) depuis le directory.

        Raises:
            ValueError: Directory sans primaire unique
        """
        entries = await self._directory.load()
        self._cluster = ClusterState.from_directory(entries)
        self._logger.info(
            "Cluster state initialized",
            primary=self._cluster.primary_id,
            regions=[r.region_id for r in self._cluster.regions],
            generation=self._cluster.generation,
        )
        self._transition(ControllerState.MONITORING, region=self._cluster.primary_id)
        return self._cluster

    async def _refresh_directory(self) -> None:
        try:
            entries = await self._directory.load()
        except Exception as e:
            self._logger.warn(
                "Cluster directory refresh failed, keeping last known regions",
                error=f"{type(e).__name__}: {e}",
            )
            return
        self._cluster = self._cluster.with_directory(entries)

    async def run_cycle(self) -> Optional[FailoverEvent]:
        """
        Un cycle de surveillance du primaire.

        Returns:
            FailoverEvent finalisé si un failover a été tenté, sinon None
        """
        if self._cluster is None:
            await self.initialize()
        else:
            await self._refresh_directory()

        primary = self._cluster.primary
        probe = await self._prober.probe(primary)
        self._cluster = self._cluster.with_observation(primary.region_id, probe.status)

        if probe.healthy:
            if self._failures:
                self._logger.info(
                    "Primary recovered",
                    region=primary.region_id,
                    previous_failures=self._failures,
                )
            self._failures = 0
            if self._state != ControllerState.MONITORING:
                self._transition(ControllerState.MONITORING, region=primary.region_id)
            return None

        self._failures += 1
        self._logger.warn(
            "Primary health check failed",
            region=primary.region_id,
            consecutive_failures=self._failures,
            failure_threshold=self._failure_threshold,
            error=probe.error,
        )
        if self._state != ControllerState.DETECTING:
            self._transition(ControllerState.DETECTING, region=primary.region_id)

        if self._failures < self._failure_threshold:
            return None

        reason = (
            f"primary {primary.region_id} unhealthy for {self._failures} consecutive checks"
            f" ({probe.error or 'no detail'})"
        )
        return await self.run_failover(reason)

    # ══════════════════════════════════════════════════════════════════════════
    # FAILOVER
    # ══════════════════════════════════════════════════════════════════════════

    async def run_failover(self, reason: str) -> Optional[FailoverEvent]:
        """
        Exécute une tentative complète de failover.

        Returns:
            FailoverEvent finalisé, ou None si le bail est détenu ailleurs

        Raises:
            FailoverError: Contrôleur non initialisé ou failover déjà en cours
        """
        if self._cluster is None:
            raise FailoverError("Controller not initialized")
        if self._failover_in_progress:
            raise FailoverError("Failover already in progress")

        if not await self._lock.acquire(self._owner_id):
            self._logger.warn(
                "Failover lease held by another orchestrator, attempt skipped",
                owner=self._owner_id,
                primary=self._cluster.primary_id,
            )
            return None

        self._failover_in_progress = True
        state = self._cluster
        event = FailoverEvent.start(reason, state)
        self._logger.set_default_correlation(event.event_id)
        try:
            self._logger.warn(
                "Failover initiated",
                reason=reason,
                primary=state.primary_id,
                generation=state.generation,
            )
            await self._notifier.notify(event, Severity.WARNING)

            event, self._cluster = await self._execute(event, state)

            await self._record(event)
            severity = Severity.INFO if event.outcome == FailoverOutcome.SUCCEEDED else Severity.CRITICAL
            await self._notifier.notify(event, severity)

            self._transition(ControllerState.MONITORING, region=self._cluster.primary_id)
            return event
        finally:
            self._failures = 0
            self._failover_in_progress = False
            await self._lock.release(self._owner_id)
            self._logger.set_default_correlation(None)

    async def _execute(
        self, event: FailoverEvent, state: ClusterState
    ) -> Tuple[FailoverEvent, ClusterState]:
        """Séquence sélection → promotion → propagation → validation."""
        self._transition(ControllerState.SELECTING_CANDIDATE, region=state.primary_id)
        selection = await self._selector.select(state)
        # Observations gardées quelle que soit l'issue; les rôles ne changent pas
        for report in selection.reports:
            state = state.with_observation(report.region_id, report.health, report.lag_seconds)
        event = event.with_candidates(
            selection.reports, selection.candidate.region_id if selection.has_candidate else None
        )

        try:
            target = selection.require_candidate()
        except NoEligibleCandidateError as e:
            return self._fail(event, FailoverOutcome.ABORTED_NO_CANDIDATE, str(e)), state

        self._transition(ControllerState.PROMOTING, region=target.region_id)
        try:
            await self._promoter.promote(target, state)
        except PromotionError as e:
            return self._fail(event, FailoverOutcome.PROMOTION_FAILED, f"{e.step}: {e}"), state

        # Promotion irréversible: l'état adopte le nouveau primaire dès ici
        promoted = state.with_promoted(target.region_id)
        new_primary = promoted.primary

        self._transition(ControllerState.PROPAGATING, region=new_primary.region_id)
        try:
            await self._propagator.propagate(new_primary, promoted)
        except PropagationError as e:
            return self._fail(event, FailoverOutcome.PROPAGATION_FAILED, str(e)), promoted

        self._transition(ControllerState.VALIDATING, region=new_primary.region_id)
        validation = await self._validator.validate(new_primary)
        if not validation.success:
            return (
                self._fail(event, FailoverOutcome.VALIDATION_FAILED, validation.error or "write refused"),
                promoted,
            )

        self._transition(
            ControllerState.STABLE,
            region=new_primary.region_id,
            outcome=FailoverOutcome.SUCCEEDED.value,
        )
        self._logger.info(
            "Failover completed",
            previous_primary=state.primary_id,
            new_primary=new_primary.region_id,
            generation=promoted.generation,
            marker=validation.marker,
        )
        detail = f"{state.primary_id} -> {new_primary.region_id} (generation {promoted.generation})"
        return event.finalize(FailoverOutcome.SUCCEEDED, detail), promoted

    def _fail(self, event: FailoverEvent, outcome: FailoverOutcome, detail: str) -> FailoverEvent:
        self._transition(ControllerState.FAILED, region=event.target, outcome=outcome.value)
        self._logger.critical(
            "Failover failed, manual intervention required",
            outcome=outcome.value,
            target=event.target,
            promoted=outcome.promotion_happened,
            detail=detail,
        )
        return event.finalize(outcome, detail)

    async def _record(self, event: FailoverEvent) -> None:
        try:
            record = await self._audit.append(event)
        except AuditLogError as e:
            self._logger.critical(
                "Failover event could not be written to the audit log",
                event_id=event.event_id,
                error=str(e),
            )
            return
        self._logger.info(
            "Failover event recorded",
            event_id=event.event_id,
            sequence=record.sequence,
            hash=record.hash_value[:16],
        )

    # ══════════════════════════════════════════════════════════════════════════
    # BOUCLE
    # ══════════════════════════════════════════════════════════════════════════

    async def run(self, shutdown_event: Optional[asyncio.Event] = None) -> None:
        """
        Boucle de surveillance jusqu'à l'arrêt.

        Entre deux cycles, attend poll_interval_seconds ou le signal d'arrêt.
        """
        if shutdown_event is not None:
            self._shutdown = shutdown_event
        if self._cluster is None:
            await self.initialize()

        self._logger.info(
            "Failover controller started",
            owner=self._owner_id,
            poll_interval_seconds=self._poll_interval,
            failure_threshold=self._failure_threshold,
        )
        while not self._shutdown.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                self._logger.critical(
                    "Monitoring cycle aborted",
                    state=self._state.value,
                    error=f"{type(e).__name__}: {e}",
                )
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass

        self._logger.info("Failover controller stopped", owner=self._owner_id)

    def request_shutdown(self) -> None:
        """Arrêt gracieux après le cycle en cours (SIGINT/SIGTERM)."""
        self._shutdown.set()
