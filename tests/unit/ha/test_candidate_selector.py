"""
Tests unitaires CandidateSelector

- Filtre: HEALTHY et lag strictement sous le seuil
- Choix: lag minimum, égalité départagée par region_id
- Aucun candidat: candidate=None avec les rapports
"""

import math
from unittest.mock import AsyncMock, Mock

import pytest

from dbfailover.ha.candidate_selector import CandidateSelector, classify, rank_candidates
from dbfailover.ha.interfaces import (
    INFINITE_LAG,
    CandidateReason,
    CandidateReport,
    ClusterState,
    HealthStatus,
    IHealthProber,
    ILagEvaluator,
    LagResult,
    ProbeResult,
)


def _probe(region_id: str, healthy: bool = True) -> ProbeResult:
    status = HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY
    return ProbeResult(region_id=region_id, status=status)


def build_selector(logger, health, lags, max_staleness=300.0):
    """
    Args:
        health: {region_id: bool}
        lags: {region_id: float}
    """
    prober = Mock(spec=IHealthProber)
    prober.probe = AsyncMock(side_effect=lambda region: _probe(region.region_id, health[region.region_id]))
    evaluator = Mock(spec=ILagEvaluator)
    evaluator.evaluate = AsyncMock(
        side_effect=lambda region: LagResult(region.region_id, lags[region.region_id])
    )
    selector = CandidateSelector(prober, evaluator, logger, max_staleness_seconds=max_staleness)
    return selector, prober, evaluator


@pytest.fixture
def four_regions(make_region) -> ClusterState:
    return ClusterState(
        primary_id="us-east-1",
        regions=(
            make_region("us-east-1", primary=True),
            make_region("us-west-2"),
            make_region("eu-west-1"),
            make_region("ap-south-1"),
        ),
    )


# ══════════════════════════════════════════════════════════════════════════════
# TESTS CLASSIFICATION
# ══════════════════════════════════════════════════════════════════════════════


class TestClassify:
    def test_unhealthy(self):
        report = classify(_probe("a", healthy=False), None, 300)

        assert report.reason == CandidateReason.UNHEALTHY
        assert report.lag_seconds is None

    def test_eligible_under_threshold(self):
        report = classify(_probe("a"), LagResult("a", 299.0), 300)
        assert report.eligible is True

    def test_lag_equal_to_threshold_not_eligible(self):
        """Le seuil est strict: lag == seuil est rejeté."""
        report = classify(_probe("a"), LagResult("a", 300.0), 300)
        assert report.reason == CandidateReason.LAG_EXCEEDS_THRESHOLD

    def test_unknown_lag(self):
        report = classify(_probe("a"), LagResult("a", INFINITE_LAG, "no metric"), 300)

        assert report.reason == CandidateReason.LAG_UNKNOWN
        assert math.isinf(report.lag_seconds)


class TestRankCandidates:
    def test_numeric_ordering(self):
        """Tri numérique: 9.5 avant 10.0 (pas d'ordre textuel)."""
        reports = [
            CandidateReport("b", HealthStatus.HEALTHY, 10.0, CandidateReason.ELIGIBLE),
            CandidateReport("a", HealthStatus.HEALTHY, 9.5, CandidateReason.ELIGIBLE),
        ]
        assert [r.region_id for r in rank_candidates(reports)] == ["a", "b"]

    def test_tie_broken_by_region_id(self):
        reports = [
            CandidateReport("us-west-2", HealthStatus.HEALTHY, 3.0, CandidateReason.ELIGIBLE),
            CandidateReport("eu-west-1", HealthStatus.HEALTHY, 3.0, CandidateReason.ELIGIBLE),
        ]
        assert rank_candidates(reports)[0].region_id == "eu-west-1"

    def test_ineligible_filtered(self):
        reports = [
            CandidateReport("a", HealthStatus.UNHEALTHY, None, CandidateReason.UNHEALTHY),
            CandidateReport("b", HealthStatus.HEALTHY, 500.0, CandidateReason.LAG_EXCEEDS_THRESHOLD),
        ]
        assert rank_candidates(reports) == []


# ══════════════════════════════════════════════════════════════════════════════
# TESTS SÉLECTION
# ══════════════════════════════════════════════════════════════════════════════


class TestSelect:
    @pytest.mark.asyncio
    async def test_selects_lowest_lag(self, logger, four_regions):
        selector, _, _ = build_selector(
            logger,
            health={"us-west-2": True, "eu-west-1": True, "ap-south-1": True},
            lags={"us-west-2": 12.0, "eu-west-1": 4.0, "ap-south-1": 250.0},
        )

        result = await selector.select(four_regions)

        assert result.has_candidate is True
        assert result.candidate.region_id == "eu-west-1"
        assert len(result.reports) == 3

    @pytest.mark.asyncio
    async def test_primary_never_considered(self, logger, four_regions):
        selector, prober, _ = build_selector(
            logger,
            health={"us-west-2": True, "eu-west-1": True, "ap-south-1": True},
            lags={"us-west-2": 1.0, "eu-west-1": 1.0, "ap-south-1": 1.0},
        )

        await selector.select(four_regions)

        probed = {call.args[0].region_id for call in prober.probe.await_args_list}
        assert "us-east-1" not in probed

    @pytest.mark.asyncio
    async def test_unhealthy_secondary_not_lag_evaluated(self, logger, four_regions):
        selector, _, evaluator = build_selector(
            logger,
            health={"us-west-2": False, "eu-west-1": True, "ap-south-1": True},
            lags={"us-west-2": 0.0, "eu-west-1": 8.0, "ap-south-1": 9.0},
        )

        result = await selector.select(four_regions)

        evaluated = {call.args[0].region_id for call in evaluator.evaluate.await_args_list}
        assert "us-west-2" not in evaluated
        assert result.candidate.region_id == "eu-west-1"

    @pytest.mark.asyncio
    async def test_threshold_boundary(self, logger, four_regions):
        """299s éligible, 300s rejeté."""
        selector, _, _ = build_selector(
            logger,
            health={"us-west-2": True, "eu-west-1": True, "ap-south-1": False},
            lags={"us-west-2": 300.0, "eu-west-1": 299.0, "ap-south-1": 0.0},
        )

        result = await selector.select(four_regions)

        assert result.candidate.region_id == "eu-west-1"

    @pytest.mark.asyncio
    async def test_deterministic_tie(self, logger, four_regions):
        selector, _, _ = build_selector(
            logger,
            health={"us-west-2": True, "eu-west-1": True, "ap-south-1": True},
            lags={"us-west-2": 5.0, "eu-west-1": 5.0, "ap-south-1": 5.0},
        )

        first = await selector.select(four_regions)
        second = await selector.select(four_regions)

        assert first.candidate.region_id == "ap-south-1"
        assert second.candidate.region_id == "ap-south-1"

    @pytest.mark.asyncio
    async def test_no_eligible_candidate(self, logger, four_regions):
        selector, _, _ = build_selector(
            logger,
            health={"us-west-2": False, "eu-west-1": True, "ap-south-1": True},
            lags={"us-west-2": 0.0, "eu-west-1": 600.0, "ap-south-1": INFINITE_LAG},
        )

        result = await selector.select(four_regions)

        assert result.candidate is None
        reasons = {r.region_id: r.reason for r in result.reports}
        assert reasons == {
            "us-west-2": CandidateReason.UNHEALTHY,
            "eu-west-1": CandidateReason.LAG_EXCEEDS_THRESHOLD,
            "ap-south-1": CandidateReason.LAG_UNKNOWN,
        }

    @pytest.mark.asyncio
    async def test_two_secondaries_lowest_lag_wins(self, logger, cluster_state):
        """Secondaires à 10s et 120s, seuil 300s: la région à 10s est choisie."""
        selector, _, _ = build_selector(
            logger,
            health={"us-west-2": True, "eu-west-1": True},
            lags={"us-west-2": 120.0, "eu-west-1": 10.0},
        )

        result = await selector.select(cluster_state)

        assert result.candidate.region_id == "eu-west-1"

    @pytest.mark.asyncio
    async def test_single_secondary_over_threshold(self, logger, make_region):
        """Seul secondaire à 400s: aucun candidat."""
        state = ClusterState(
            primary_id="us-east-1",
            regions=(make_region("us-east-1", primary=True), make_region("us-west-2")),
        )
        selector, _, _ = build_selector(logger, health={"us-west-2": True}, lags={"us-west-2": 400.0})

        result = await selector.select(state)

        assert result.candidate is None
        assert result.reports[0].reason == CandidateReason.LAG_EXCEEDS_THRESHOLD

    @pytest.mark.parametrize("value", [0, -5, float("inf")])
    def test_invalid_threshold(self, logger, value):
        with pytest.raises(ValueError):
            CandidateSelector(Mock(spec=IHealthProber), Mock(spec=ILagEvaluator), logger, value)
