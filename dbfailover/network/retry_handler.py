"""
Network - Retry Handler

Retries avec backoff exponentiel. Sert aussi de budget borné pour
l'attente d'acquittement pendant la promotion.
"""

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .interfaces import IRetryHandler, RetryConfig, RetryResult

T = TypeVar("T")


class MaxRetriesExceededError(Exception):
    """Nombre max de retries atteint."""

    def __init__(self, attempts: int, last_error: Optional[Exception]) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")


class RetryHandler(IRetryHandler):
    """
    Gestion retries avec backoff exponentiel.

    Backoff: delay = min(initial * (base ^ attempt), max_delay)
    """

    def __init__(self, default_config: Optional[RetryConfig] = None) -> None:
        """
        Args:
            default_config: Configuration par défaut (optionnel)
        """
        self._default_config = default_config or RetryConfig()
        self._retry_stats: Dict[str, int] = {
            "total_retries": 0,
            "successful_retries": 0,
            "failed_retries": 0,
        }

    async def execute_with_retry(
        self,
        func: Callable[..., T],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> RetryResult:
        """
        Exécute func (sync ou async) avec max_attempts tentatives.

        Une exception non retryable arrête immédiatement les tentatives.

        Returns:
            RetryResult avec succès/échec et détails
        """
        retry_config = config or self._default_config
        last_error: Optional[Exception] = None
        total_delay: float = 0.0

        for attempt in range(retry_config.max_attempts):
            try:
                if inspect.iscoroutinefunction(func):
                    result = await func(*args, **kwargs)
                else:
                    result = func(*args, **kwargs)

                if attempt > 0:
                    self._retry_stats["successful_retries"] += 1

                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempt + 1,
                    total_delay=total_delay,
                    last_error=None,
                )

            except Exception as e:
                last_error = e
                self._retry_stats["total_retries"] += 1

                if not self.is_retryable(e, retry_config):
                    return RetryResult(
                        success=False,
                        result=None,
                        attempts=attempt + 1,
                        total_delay=total_delay,
                        last_error=e,
                    )

                if attempt < retry_config.max_attempts - 1:
                    delay = self.calculate_delay(attempt, retry_config)
                    total_delay += delay
                    await asyncio.sleep(delay)

        self._retry_stats["failed_retries"] += 1

        return RetryResult(
            success=False,
            result=None,
            attempts=retry_config.max_attempts,
            total_delay=total_delay,
            last_error=last_error,
        )

    async def poll_until(
        self,
        predicate: Callable[[], Awaitable[bool]],
        config: Optional[RetryConfig] = None,
    ) -> RetryResult:
        """
        Interroge predicate jusqu'à obtenir True, dans le budget de retries.

        Un predicate qui lève une exception retryable compte comme une
        tentative infructueuse; une exception non retryable arrête le polling.

        Returns:
            RetryResult (result=True si acquitté)
        """
        retry_config = config or self._default_config
        last_error: Optional[Exception] = None
        total_delay: float = 0.0

        for attempt in range(retry_config.max_attempts):
            try:
                if await predicate():
                    return RetryResult(
                        success=True,
                        result=True,
                        attempts=attempt + 1,
                        total_delay=total_delay,
                        last_error=None,
                    )
                last_error = None
            except Exception as e:
                if not self.is_retryable(e, retry_config):
                    return RetryResult(
                        success=False,
                        result=None,
                        attempts=attempt + 1,
                        total_delay=total_delay,
                        last_error=e,
                    )
                last_error = e

            if attempt < retry_config.max_attempts - 1:
                delay = self.calculate_delay(attempt, retry_config)
                total_delay += delay
                await asyncio.sleep(delay)

        return RetryResult(
            success=False,
            result=False,
            attempts=retry_config.max_attempts,
            total_delay=total_delay,
            last_error=last_error,
        )

    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """
        Calcule délai backoff exponentiel.

        Formula: min(initial * (base ^ attempt), max_delay)

        Args:
            attempt: Numéro de tentative (0-indexed)
            config: Configuration retry

        Returns:
            Délai en secondes
        """
        delay = config.initial_delay * (config.exponential_base**attempt)
        return min(delay, config.max_delay)

    def is_retryable(self, error: Exception, config: RetryConfig) -> bool:
        """True si l'erreur fait partie de retryable_exceptions."""
        return isinstance(error, config.retryable_exceptions)

    def get_retry_stats(self) -> Dict[str, int]:
        """Retourne les statistiques de retry."""
        return dict(self._retry_stats)


def with_retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    retryable_exceptions: tuple = (ConnectionError, TimeoutError),
) -> Callable:
    """
    Decorator pour retry automatique d'une coroutine.

    Usage:
        @with_retry(max_attempts=3)
        async def send():
            ...

    Raises:
        MaxRetriesExceededError: Si toutes les tentatives échouent
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            handler = RetryHandler()
            config = RetryConfig(
                max_attempts=max_attempts,
                initial_delay=initial_delay,
                max_delay=max_delay,
                exponential_base=exponential_base,
                retryable_exceptions=retryable_exceptions,
            )
            result = await handler.execute_with_retry(func, *args, config=config, **kwargs)
            if not result.success:
                raise MaxRetriesExceededError(result.attempts, result.last_error)
            return result.result

        return wrapper

    return decorator
