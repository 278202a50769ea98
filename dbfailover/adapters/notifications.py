"""
Notification Channels (httpx)

- SlackWebhookChannel: webhook entrant (texte + pièce jointe colorée)
- PagerDutyChannel: Events API v2 (trigger, dédupliqué par event_id)

Les erreurs réseau transitoires sont retentées; un statut HTTP d'erreur
remonte immédiatement au Notifier qui le journalise.
"""

from typing import Any, Dict, Optional

import httpx

from dbfailover.ha.interfaces import INotificationChannel, Severity
from dbfailover.network import with_retry

PAGERDUTY_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"

_SLACK_COLORS = {
    Severity.INFO: "good",
    Severity.WARNING: "warning",
    Severity.CRITICAL: "danger",
}

_SLACK_FIELDS = ("outcome", "previous_primary", "target", "trigger_reason", "event_id")


class _HttpChannel(INotificationChannel):
    def __init__(
        self,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            return response


class SlackWebhookChannel(_HttpChannel):
    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not webhook_url:
            raise ValueError("webhook_url is required")
        super().__init__(timeout_seconds, transport)
        self._webhook_url = webhook_url

    @property
    def name(self) -> str:
        return "slack"

    def build_payload(self, summary: str, severity: Severity, details: Dict[str, Any]) -> Dict[str, Any]:
        fields = [
            {"title": key, "value": str(details[key]), "short": True}
            for key in _SLACK_FIELDS
            if details.get(key) is not None
        ]
        return {
            "text": summary,
            "attachments": [
                {
                    "color": _SLACK_COLORS[severity],
                    "fields": fields,
                    "footer": details.get("detail") or "",
                }
            ],
        }

    @with_retry(max_attempts=3, initial_delay=1.0, retryable_exceptions=(httpx.TransportError,))
    async def send(self, summary: str, severity: Severity, details: Dict[str, Any]) -> None:
        await self._post(self._webhook_url, self.build_payload(summary, severity, details))


class PagerDutyChannel(_HttpChannel):
    def __init__(
        self,
        routing_key: str,
        source: str = "dbfailover",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        url: str = PAGERDUTY_EVENTS_URL,
    ) -> None:
        if not routing_key:
            raise ValueError("routing_key is required")
        super().__init__(timeout_seconds, transport)
        self._routing_key = routing_key
        self._source = source
        self._url = url

    @property
    def name(self) -> str:
        return "pagerduty"

    def build_payload(self, summary: str, severity: Severity, details: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "routing_key": self._routing_key,
            "event_action": "trigger",
            "payload": {
                "summary": summary,
                "severity": severity.value,
                "source": self._source,
                "custom_details": details,
            },
        }
        event_id = details.get("event_id")
        if event_id:
            # Une tentative = un incident, mis à jour par les notifications suivantes
            payload["dedup_key"] = event_id
        return payload

    @with_retry(max_attempts=3, initial_delay=1.0, retryable_exceptions=(httpx.TransportError,))
    async def send(self, summary: str, severity: Severity, details: Dict[str, Any]) -> None:
        await self._post(self._url, self.build_payload(summary, severity, details))
