"""
Tests unitaires Notifier et LocalLeaseLock

Livraison best-effort: un canal en échec n'empêche ni les autres ni le failover.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from dbfailover.ha.interfaces import (
    FailoverEvent,
    FailoverOutcome,
    INotificationChannel,
    Severity,
)
from dbfailover.ha.lease_lock import LocalLeaseLock
from dbfailover.ha.notifier import Notifier, build_summary
from dbfailover.logging import LogLevel
from dbfailover.network import TimeoutConfig, TimeoutManager


def make_channel(name: str, error: Exception = None):
    channel = Mock(spec=INotificationChannel)
    channel.name = name
    channel.send = AsyncMock(side_effect=error)
    return channel


@pytest.fixture
def succeeded_event(cluster_state) -> FailoverEvent:
    event = FailoverEvent.start("primary down", cluster_state).with_candidates((), "us-west-2")
    return event.finalize(FailoverOutcome.SUCCEEDED, "us-east-1 -> us-west-2 (generation 1)")


# ══════════════════════════════════════════════════════════════════════════════
# TESTS RÉSUMÉ
# ══════════════════════════════════════════════════════════════════════════════


class TestBuildSummary:
    def test_started(self, cluster_state):
        event = FailoverEvent.start("3 consecutive probe failures", cluster_state)

        assert build_summary(event) == (
            "Database failover started: primary us-east-1 (3 consecutive probe failures)"
        )

    def test_succeeded(self, succeeded_event):
        summary = build_summary(succeeded_event)

        assert "us-west-2 is the new primary" in summary
        assert "was us-east-1" in summary

    def test_aborted(self, cluster_state):
        event = FailoverEvent.start("x", cluster_state).finalize(FailoverOutcome.ABORTED_NO_CANDIDATE)
        assert "no eligible secondary" in build_summary(event)


# ══════════════════════════════════════════════════════════════════════════════
# TESTS LIVRAISON
# ══════════════════════════════════════════════════════════════════════════════


class TestNotifier:
    @pytest.mark.asyncio
    async def test_all_channels_delivered(self, logger, succeeded_event):
        slack, pager = make_channel("slack"), make_channel("pagerduty")
        notifier = Notifier([slack, pager], logger)

        delivered = await notifier.notify(succeeded_event, Severity.INFO)

        assert delivered == 2
        text, severity, details = slack.send.await_args.args
        assert severity == Severity.INFO
        assert details["event_id"] == succeeded_event.event_id
        assert details["outcome"] == "succeeded"
        assert text == build_summary(succeeded_event)

    @pytest.mark.asyncio
    async def test_failing_channel_swallowed(self, logger, succeeded_event):
        broken = make_channel("slack", error=ConnectionError("webhook unreachable"))
        pager = make_channel("pagerduty")
        notifier = Notifier([broken, pager], logger)

        delivered = await notifier.notify(succeeded_event, Severity.CRITICAL, "custom summary")

        assert delivered == 1
        pager.send.assert_awaited_once()
        warning = logger.get_entries_by_level(LogLevel.WARN)[-1]
        assert warning.message == "Notification delivery failed"
        assert warning.extra["channel"] == "slack"

    @pytest.mark.asyncio
    async def test_slow_channel_bounded(self, logger, succeeded_event):
        async def hang(*args):
            await asyncio.sleep(5)

        slow = make_channel("slack")
        slow.send = AsyncMock(side_effect=hang)
        timeouts = TimeoutManager(TimeoutConfig(notification_timeout=0.05))
        notifier = Notifier([slow], logger, timeouts)

        assert await notifier.notify(succeeded_event, Severity.INFO) == 0

    @pytest.mark.asyncio
    async def test_no_channel_still_logged(self, logger, succeeded_event):
        notifier = Notifier([], logger)

        delivered = await notifier.notify(succeeded_event, Severity.CRITICAL)

        assert delivered == 0
        entry = logger.get_entries_by_level(LogLevel.CRITICAL)[-1]
        assert entry.extra["event_id"] == succeeded_event.event_id

    def test_add_channel(self, logger):
        notifier = Notifier([], logger)
        notifier.add_channel(make_channel("slack"))

        assert [c.name for c in notifier.channels] == ["slack"]


# ══════════════════════════════════════════════════════════════════════════════
# TESTS LEASE LOCAL
# ══════════════════════════════════════════════════════════════════════════════


class TestLocalLeaseLock:
    @pytest.mark.asyncio
    async def test_exclusive(self):
        lock = LocalLeaseLock()

        assert await lock.acquire("a") is True
        assert await lock.acquire("b") is False
        assert lock.owner == "a"

    @pytest.mark.asyncio
    async def test_reentrant_for_owner(self):
        lock = LocalLeaseLock()
        await lock.acquire("a")

        assert await lock.acquire("a") is True

    @pytest.mark.asyncio
    async def test_release_only_by_owner(self):
        lock = LocalLeaseLock()
        await lock.acquire("a")

        await lock.release("b")
        assert lock.owner == "a"

        await lock.release("a")
        assert lock.owner is None
        assert await lock.acquire("b") is True
