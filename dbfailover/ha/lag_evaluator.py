"""
Lag Evaluator

Mesure le retard de réplication d'un secondaire sain. Toute indisponibilité
de la métrique donne INFINITE_LAG, jamais une exception: le sélecteur peut
toujours classer tous les secondaires.

Un retard négatif vient d'un léger décalage d'horloge entre primaire et
réplica: le réplica est à jour, la valeur est ramenée à 0.
"""

import asyncio
import math
from typing import Optional

from dbfailover.ha.interfaces import (
    INFINITE_LAG,
    IDatabaseClient,
    ILagEvaluator,
    LagResult,
    Region,
)
from dbfailover.logging import IStructuredLogger
from dbfailover.network import ITimeoutManager, TimeoutManager, TimeoutType


class LagEvaluator(ILagEvaluator):
    """
    Évaluateur de retard de réplication.

    La requête est bornée par TimeoutType.LAG.
    """

    def __init__(
        self,
        database: IDatabaseClient,
        logger: IStructuredLogger,
        timeouts: Optional[ITimeoutManager] = None,
    ) -> None:
        self._database = database
        self._logger = logger
        self._timeouts = timeouts or TimeoutManager()

    async def evaluate(self, region: Region) -> LagResult:
        """
        Retourne le retard de réplication en secondes.

        Métrique absente, NaN ou illisible, erreur et timeout donnent INFINITE_LAG.
        Un retard négatif est ramené à 0.0.
        """
        timeout = self._timeouts.get_timeout(TimeoutType.LAG)
        try:
            lag = await asyncio.wait_for(
                self._database.replication_lag(region.endpoint),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return self._unknown(region, f"lag query timeout after {timeout}s")
        except Exception as e:
            return self._unknown(region, f"{type(e).__name__}: {e}")

        if lag is None:
            return self._unknown(region, "replication lag metric unavailable")

        try:
            lag_value = float(lag)
        except (TypeError, ValueError):
            return self._unknown(region, f"unparseable lag value: {lag!r}")

        if math.isnan(lag_value):
            return self._unknown(region, f"invalid lag value: {lag_value}")

        if lag_value < 0:
            self._logger.debug(
                "Negative replication lag clamped to zero",
                region=region.region_id,
                lag_seconds=lag_value,
            )
            lag_value = 0.0

        return LagResult(region_id=region.region_id, lag_seconds=lag_value)

    def _unknown(self, region: Region, reason: str) -> LagResult:
        self._logger.warn(
            "Replication lag unavailable, treating as infinite",
            region=region.region_id,
            error=reason,
        )
        return LagResult(region_id=region.region_id, lag_seconds=INFINITE_LAG, error=reason)
