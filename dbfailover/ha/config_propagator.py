"""
Config Propagator

Redirige le trafic vers le nouveau primaire:
    - store de configuration applicative (endpoint du primaire)
    - enregistrement DNS canonique (TTL <= 60s)

Les deux mises à jour sont lancées en parallèle; la propagation ne réussit
que si les deux sont acquittées.
"""

import asyncio
from typing import Awaitable, List, Optional

from dbfailover.ha.interfaces import (
    ClusterState,
    IAppConfigStore,
    IConfigPropagator,
    INameRecordUpdater,
    PropagationError,
    PropagationResult,
    Region,
)
from dbfailover.logging import IStructuredLogger
from dbfailover.network import ITimeoutManager, TimeoutManager, TimeoutType

MAX_TTL_SECONDS = 60


class ConfigPropagator(IConfigPropagator):
    """
    Publication du nouveau primaire vers la configuration applicative et le DNS.
    """

    def __init__(
        self,
        app_config: IAppConfigStore,
        dns: INameRecordUpdater,
        logger: IStructuredLogger,
        ttl_seconds: int = MAX_TTL_SECONDS,
        timeouts: Optional[ITimeoutManager] = None,
    ) -> None:
        """
        Args:
            app_config: Store de configuration applicative
            dns: Gestionnaire de l'enregistrement canonique
            logger: Logger structuré
            ttl_seconds: TTL de l'enregistrement (1 à 60s)
            timeouts: Borne par mise à jour

        Raises:
            ValueError: TTL hors bornes
        """
        if not 1 <= ttl_seconds <= MAX_TTL_SECONDS:
            raise ValueError(f"ttl_seconds must be between 1 and {MAX_TTL_SECONDS}")
        self._app_config = app_config
        self._dns = dns
        self._logger = logger
        self._ttl = ttl_seconds
        self._timeouts = timeouts or TimeoutManager()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def propagate(self, region: Region, state: ClusterState) -> PropagationResult:
        """
        Publie region comme primaire.

        Raises:
            PropagationError: Une des mises à jour a échoué (result attaché)
        """
        timeout = self._timeouts.get_timeout(TimeoutType.PROPAGATION)
        outcomes = await asyncio.gather(
            self._bounded(self._app_config.publish_primary(region.region_id, region.endpoint), timeout),
            self._bounded(self._dns.upsert_primary(region.endpoint, self._ttl), timeout),
            return_exceptions=True,
        )

        errors: List[str] = []
        for name, outcome in zip(("app_config", "dns"), outcomes):
            if isinstance(outcome, BaseException):
                errors.append(f"{name}: {type(outcome).__name__}: {outcome}")

        result = PropagationResult(
            region_id=region.region_id,
            app_config_updated=not isinstance(outcomes[0], BaseException),
            dns_updated=not isinstance(outcomes[1], BaseException),
            errors=tuple(errors),
        )

        if not result.complete:
            self._logger.error(
                "Configuration propagation incomplete",
                region=region.region_id,
                generation=state.generation,
                app_config_updated=result.app_config_updated,
                dns_updated=result.dns_updated,
                errors=list(errors),
            )
            raise PropagationError("; ".join(errors), result=result)

        self._logger.info(
            "Configuration propagated",
            region=region.region_id,
            endpoint=region.endpoint.address,
            ttl_seconds=self._ttl,
        )
        return result

    @staticmethod
    async def _bounded(call: Awaitable[None], timeout: float) -> None:
        try:
            await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"no acknowledgment after {timeout}s")
