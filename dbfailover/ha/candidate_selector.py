"""
Candidate Selector

Choisit la cible de promotion parmi les secondaires:
    1. filtre: HEALTHY et lag strictement sous le seuil de staleness (300s)
    2. choix: lag minimum, égalité départagée par l'identifiant de région

Un ensemble filtré vide est un arrêt franc: promouvoir un réplica en retard
risque une perte de données et ne doit jamais arriver silencieusement.
"""

import asyncio
import math
from typing import Iterable, List, Optional, Tuple

from dbfailover.ha.interfaces import (
    CandidateReason,
    CandidateReport,
    ClusterState,
    HealthStatus,
    ICandidateSelector,
    IHealthProber,
    ILagEvaluator,
    LagResult,
    ProbeResult,
    Region,
    SelectionResult,
)
from dbfailover.logging import IStructuredLogger


def classify(
    probe: ProbeResult, lag: Optional[LagResult], max_staleness_seconds: float
) -> CandidateReport:
    """Construit le rapport d'un secondaire à partir de ses observations."""
    if not probe.healthy:
        return CandidateReport(
            region_id=probe.region_id,
            health=probe.status,
            lag_seconds=None,
            reason=CandidateReason.UNHEALTHY,
        )

    if lag is None or not lag.known:
        reason = CandidateReason.LAG_UNKNOWN
    elif lag.lag_seconds < max_staleness_seconds:
        reason = CandidateReason.ELIGIBLE
    else:
        reason = CandidateReason.LAG_EXCEEDS_THRESHOLD

    return CandidateReport(
        region_id=probe.region_id,
        health=HealthStatus.HEALTHY,
        lag_seconds=lag.lag_seconds if lag is not None else None,
        reason=reason,
    )


def rank_candidates(reports: Iterable[CandidateReport]) -> List[CandidateReport]:
    """
    Classe les rapports éligibles: lag croissant puis region_id.

    Comparaison typée (float, str), pas de tri textuel.
    """
    eligible = [r for r in reports if r.eligible]
    return sorted(eligible, key=lambda r: (r.lag_seconds, r.region_id))


class CandidateSelector(ICandidateSelector):
    """Sélection déterministe du meilleur secondaire."""

    DEFAULT_MAX_STALENESS_SECONDS: float = 300.0

    def __init__(
        self,
        prober: IHealthProber,
        lag_evaluator: ILagEvaluator,
        logger: IStructuredLogger,
        max_staleness_seconds: float = DEFAULT_MAX_STALENESS_SECONDS,
    ) -> None:
        """
        Raises:
            ValueError: Si max_staleness_seconds <= 0
        """
        if max_staleness_seconds <= 0 or math.isinf(max_staleness_seconds):
            raise ValueError("max_staleness_seconds must be a positive finite number")
        self._prober = prober
        self._lag = lag_evaluator
        self._logger = logger
        self._max_staleness = max_staleness_seconds

    @property
    def max_staleness_seconds(self) -> float:
        return self._max_staleness

    async def _observe(self, region: Region) -> CandidateReport:
        probe = await self._prober.probe(region)
        lag = await self._lag.evaluate(region) if probe.healthy else None
        return classify(probe, lag, self._max_staleness)

    async def observe_all(self, state: ClusterState) -> Tuple[CandidateReport, ...]:
        """Observe tous les secondaires en parallèle; fusion après complétion."""
        secondaries = state.secondaries
        reports = await asyncio.gather(*(self._observe(region) for region in secondaries))
        return tuple(reports)

    async def select(self, state: ClusterState) -> SelectionResult:
        """
        Choisit la cible de promotion.

        Returns:
            SelectionResult avec candidate=None si aucun secondaire éligible
        """
        reports = await self.observe_all(state)

        for report in reports:
            if not report.eligible:
                self._logger.info(
                    "Secondary not eligible for promotion",
                    region=report.region_id,
                    reason=report.reason.value,
                    lag_seconds=report.to_dict()["lag_seconds"],
                )

        ranked = rank_candidates(reports)
        if not ranked:
            return SelectionResult(candidate=None, reports=reports)

        best = ranked[0]
        self._logger.info(
            "Promotion candidate selected",
            region=best.region_id,
            lag_seconds=best.lag_seconds,
            eligible=len(ranked),
        )
        return SelectionResult(candidate=state.get(best.region_id), reports=reports)
