"""
Notifier

Livraison best-effort des événements de failover aux canaux opérateurs.
Un canal en échec est journalisé et n'interrompt ni les autres canaux ni
le failover.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from dbfailover.ha.interfaces import (
    FailoverEvent,
    FailoverOutcome,
    INotificationChannel,
    INotifier,
    Severity,
)
from dbfailover.logging import IStructuredLogger, LogLevel
from dbfailover.network import ITimeoutManager, TimeoutManager, TimeoutType

_SEVERITY_LEVELS = {
    Severity.INFO: LogLevel.INFO,
    Severity.WARNING: LogLevel.WARN,
    Severity.CRITICAL: LogLevel.CRITICAL,
}

_OUTCOME_SUMMARIES = {
    FailoverOutcome.SUCCEEDED: "Database failover completed: {target} is the new primary (was {previous})",
    FailoverOutcome.ABORTED_NO_CANDIDATE: "Database failover aborted: no eligible secondary (primary {previous} down)",
    FailoverOutcome.PROMOTION_FAILED: "Database failover failed during promotion of {target}: manual intervention required",
    FailoverOutcome.PROPAGATION_FAILED: "Database failover: {target} promoted but routing not updated, manual intervention required",
    FailoverOutcome.VALIDATION_FAILED: "Database failover: {target} promoted but write validation failed, manual intervention required",
}


def build_summary(event: FailoverEvent) -> str:
    """Résumé lisible d'un événement (finalisé ou en cours)."""
    if event.outcome is None:
        return f"Database failover started: primary {event.previous_primary} ({event.trigger_reason})"
    template = _OUTCOME_SUMMARIES[event.outcome]
    return template.format(target=event.target or "-", previous=event.previous_primary)


class Notifier(INotifier):
    """
    Diffusion des alertes de failover vers tous les canaux.

    Best-effort: un canal en échec est journalisé, jamais propagé.
    """

    def __init__(
        self,
        channels: Iterable[INotificationChannel],
        logger: IStructuredLogger,
        timeouts: Optional[ITimeoutManager] = None,
    ) -> None:
        self._channels: List[INotificationChannel] = list(channels)
        self._logger = logger
        self._timeouts = timeouts or TimeoutManager()

    @property
    def channels(self) -> List[INotificationChannel]:
        return list(self._channels)

    def add_channel(self, channel: INotificationChannel) -> None:
        self._channels.append(channel)

    async def notify(
        self, event: FailoverEvent, severity: Severity, summary: Optional[str] = None
    ) -> int:
        """
        Envoie l'événement à tous les canaux en parallèle.

        Returns:
            Nombre de canaux ayant acquitté la livraison
        """
        text = summary or build_summary(event)
        details = event.to_dict()

        # Trace locale même sans canal configuré
        self._logger.log(
            _SEVERITY_LEVELS[severity],
            text,
            event_id=event.event_id,
            outcome=details["outcome"],
            target=event.target,
        )

        if not self._channels:
            return 0

        outcomes = await asyncio.gather(
            *(self._send(channel, text, severity, details) for channel in self._channels),
            return_exceptions=True,
        )

        delivered = 0
        for channel, outcome in zip(self._channels, outcomes):
            if isinstance(outcome, BaseException):
                self._logger.warn(
                    "Notification delivery failed",
                    channel=channel.name,
                    event_id=event.event_id,
                    error=f"{type(outcome).__name__}: {outcome}",
                )
            else:
                delivered += 1
        return delivered

    async def _send(
        self,
        channel: INotificationChannel,
        text: str,
        severity: Severity,
        details: Dict[str, Any],
    ) -> None:
        timeout = self._timeouts.get_timeout(TimeoutType.NOTIFICATION)
        try:
            await asyncio.wait_for(channel.send(text, severity, details), timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"notification timeout after {timeout}s")
