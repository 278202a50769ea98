"""
Validator

Confirme que le nouveau primaire accepte une vraie écriture (ligne marqueur
horodatée). Un simple probe de lecture ne suffit pas: un réplica promu peut
encore refuser les écritures.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from dbfailover.ha.interfaces import (
    IDatabaseClient,
    IValidator,
    Region,
    ValidationError,
    ValidationResult,
)
from dbfailover.logging import IStructuredLogger
from dbfailover.network import ITimeoutManager, TimeoutManager, TimeoutType


def make_marker(region_id: str) -> str:
    """Marqueur unique: région, horodatage UTC, suffixe aléatoire."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{region_id}:{stamp}:{uuid.uuid4().hex[:8]}"


class Validator(IValidator):
    """Vérifie le nouveau primaire par une écriture réelle."""

    def __init__(
        self,
        database: IDatabaseClient,
        logger: IStructuredLogger,
        timeouts: Optional[ITimeoutManager] = None,
    ) -> None:
        self._database = database
        self._logger = logger
        self._timeouts = timeouts or TimeoutManager()

    async def validate(self, region: Region) -> ValidationResult:
        marker = make_marker(region.region_id)
        start = time.perf_counter()
        try:
            await self._write(region, marker)
        except ValidationError as e:
            self._logger.error(
                "Write validation failed on new primary",
                region=region.region_id,
                error=str(e),
            )
            return ValidationResult(
                region_id=region.region_id,
                success=False,
                marker=marker,
                error=str(e),
            )

        latency = int((time.perf_counter() - start) * 1000)
        self._logger.info(
            "Write validation succeeded on new primary",
            region=region.region_id,
            marker=marker,
            latency_ms=latency,
        )
        return ValidationResult(
            region_id=region.region_id,
            success=True,
            marker=marker,
            latency_ms=latency,
        )

    async def _write(self, region: Region, marker: str) -> None:
        """
        Raises:
            ValidationError: Timeout ou écriture refusée
        """
        timeout = self._timeouts.get_timeout(TimeoutType.VALIDATION)
        try:
            await asyncio.wait_for(
                self._database.write_marker(region.endpoint, region.region_id, marker),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise ValidationError(f"validation write timeout after {timeout}s")
        except Exception as e:
            raise ValidationError(f"{type(e).__name__}: {e}") from e
