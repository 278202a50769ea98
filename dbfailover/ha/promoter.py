"""
Promoter

Promotion irréversible d'un secondaire en nouveau primaire.

Si la plateforme offre une promotion atomique, elle est utilisée (un appel,
puis attente d'acquittement). Sinon la séquence stricte:
    1. détacher la cible de son rôle de réplica (sauté si déjà détachée)
    2. attendre l'acquittement du détachement (budget de retries borné)
    3. promouvoir
La séquence est idempotente et peut être rejouée depuis l'étape 1.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar

from dbfailover.ha.interfaces import (
    ClusterState,
    IClusterAdmin,
    IPromoter,
    PromotionError,
    PromotionResult,
    Region,
)
from dbfailover.logging import IStructuredLogger
from dbfailover.network import (
    IRetryHandler,
    ITimeoutManager,
    RetryConfig,
    RetryHandler,
    TimeoutManager,
    TimeoutType,
)

T = TypeVar("T")


def default_ack_config() -> RetryConfig:
    # Lecture d'état seulement: toute erreur est retentée
    return RetryConfig(
        max_attempts=10,
        initial_delay=5.0,
        max_delay=30.0,
        exponential_base=2.0,
        retryable_exceptions=(Exception,),
    )


class Promoter(IPromoter):
    """
    Promotion d'un secondaire en primaire inscriptible.

    Primitive atomique si l'admin la supporte, sinon séquence idempotente
    détachement → acquittement → promotion. Un échec lève PromotionError
    avec l'étape en cause.

    Example:
        promoter = Promoter(admin, logger)
        result = await promoter.promote(target, state)
    """

    def __init__(
        self,
        admin: IClusterAdmin,
        logger: IStructuredLogger,
        retry_handler: Optional[IRetryHandler] = None,
        ack_config: Optional[RetryConfig] = None,
        timeouts: Optional[ITimeoutManager] = None,
    ) -> None:
        """
        Args:
            admin: API d'administration du cluster
            logger: Logger structuré
            retry_handler: Gestionnaire de retries (polling d'acquittement)
            ack_config: Budget d'attente d'acquittement
            timeouts: Borne globale de la promotion
        """
        self._admin = admin
        self._logger = logger
        self._retry = retry_handler or RetryHandler()
        self._ack_config = ack_config or default_ack_config()
        self._timeouts = timeouts or TimeoutManager()

    async def promote(self, target: Region, state: ClusterState) -> PromotionResult:
        """
        Promeut target.

        Raises:
            PromotionError: Cible invalide, étape en échec, acquittement absent ou timeout
        """
        try:
            current = state.get(target.region_id)
        except KeyError:
            raise PromotionError(f"Region {target.region_id} not found in cluster state", step="precheck")

        if current.is_primary:
            raise PromotionError(f"Region {target.region_id} is already primary", step="precheck")

        timeout = self._timeouts.get_timeout(TimeoutType.PROMOTION)
        try:
            result = await asyncio.wait_for(self._run(current), timeout=timeout)
        except asyncio.TimeoutError:
            raise PromotionError(f"Promotion timeout exceeded ({timeout}s)", step="timeout")

        self._logger.info(
            "Region promoted to primary",
            region=target.region_id,
            atomic=result.atomic,
            steps=list(result.steps),
            ack_attempts=result.ack_attempts,
        )
        return result

    async def _run(self, target: Region) -> PromotionResult:
        if self._admin.supports_atomic_promotion:
            await self._step("promote_atomic", target, lambda: self._admin.promote_atomic(target))
            attempts = await self._await_ack("ack_writer", target, lambda: self._admin.is_writer(target))
            return PromotionResult(
                region_id=target.region_id,
                atomic=True,
                steps=("promote_atomic", "ack_writer"),
                ack_attempts=attempts,
            )

        steps: List[str] = []
        already_detached = await self._step("check_detached", target, lambda: self._admin.is_detached(target))
        if already_detached:
            steps.append("already_detached")
        else:
            await self._step("detach", target, lambda: self._admin.detach(target))
            steps.append("detach")

        attempts = await self._await_ack("ack_detach", target, lambda: self._admin.is_detached(target))
        steps.append("ack_detach")

        await self._step("promote", target, lambda: self._admin.promote(target))
        steps.append("promote")

        return PromotionResult(
            region_id=target.region_id,
            atomic=False,
            steps=tuple(steps),
            ack_attempts=attempts,
        )

    async def _step(self, step: str, target: Region, call: Callable[[], Awaitable[T]]) -> T:
        self._logger.info("Promotion step started", region=target.region_id, step=step)
        try:
            return await call()
        except Exception as e:
            raise PromotionError(f"Promotion step '{step}' failed: {e}", step=step) from e

    async def _await_ack(self, step: str, target: Region, predicate: Callable[[], Awaitable[bool]]) -> int:
        result = await self._retry.poll_until(predicate, config=self._ack_config)
        if not result.success:
            detail = f": {result.last_error}" if result.last_error else ""
            raise PromotionError(
                f"No acknowledgment for '{step}' after {result.attempts} attempts{detail}",
                step=step,
            )
        return result.attempts
