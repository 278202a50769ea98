"""
Health Prober

Vérification de vivacité bornée dans le temps d'un endpoint (lecture
triviale). Le prober classe, il ne remonte pas d'erreur: timeout, connexion
refusée ou erreur d'authentification donnent UNHEALTHY.
"""

import asyncio
import time
from typing import Optional

from dbfailover.ha.interfaces import (
    HealthStatus,
    IDatabaseClient,
    IHealthProber,
    ProbeError,
    ProbeResult,
    Region,
)
from dbfailover.logging import IStructuredLogger
from dbfailover.network import ITimeoutManager, TimeoutManager, TimeoutType


class HealthProber(IHealthProber):
    """Probe de vivacité avec timeout (5s par défaut)."""

    def __init__(
        self,
        database: IDatabaseClient,
        logger: IStructuredLogger,
        timeouts: Optional[ITimeoutManager] = None,
    ) -> None:
        """
        Args:
            database: Client requête/santé
            logger: Logger structuré
            timeouts: Gestionnaire de timeouts (défauts sinon)
        """
        self._database = database
        self._logger = logger
        self._timeouts = timeouts or TimeoutManager()

    @property
    def timeout_seconds(self) -> float:
        return self._timeouts.get_timeout(TimeoutType.PROBE)

    async def probe(self, region: Region) -> ProbeResult:
        """
        Exécute le probe d'une région.

        Returns:
            ProbeResult HEALTHY avec latence, ou UNHEALTHY avec l'erreur
        """
        start = time.perf_counter()
        try:
            await self._check(region)
        except ProbeError as e:
            self._logger.warn(
                "Health probe failed",
                region=region.region_id,
                endpoint=region.endpoint.address,
                error=str(e),
            )
            return ProbeResult(
                region_id=region.region_id,
                status=HealthStatus.UNHEALTHY,
                error=str(e),
            )

        latency = int((time.perf_counter() - start) * 1000)
        self._logger.debug(
            "Health probe succeeded",
            region=region.region_id,
            latency_ms=latency,
        )
        return ProbeResult(
            region_id=region.region_id,
            status=HealthStatus.HEALTHY,
            latency_ms=latency,
        )

    async def _check(self, region: Region) -> None:
        """
        Raises:
            ProbeError: Timeout ou toute erreur du client
        """
        timeout = self.timeout_seconds
        try:
            await asyncio.wait_for(self._database.ping(region.endpoint), timeout=timeout)
        except asyncio.TimeoutError:
            raise ProbeError(f"probe timeout after {timeout}s")
        except Exception as e:
            raise ProbeError(f"{type(e).__name__}: {e}") from e
