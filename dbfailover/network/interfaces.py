"""
Network - Interfaces

Timeouts par opération et retries avec backoff exponentiel pour
les appels vers les bases, l'API d'administration et les consommateurs aval.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class TimeoutType(Enum):
    """Opérations bornées dans le temps."""

    PROBE = "probe"
    LAG = "lag"
    PROMOTION = "promotion"
    PROPAGATION = "propagation"
    VALIDATION = "validation"
    NOTIFICATION = "notification"


@dataclass
class TimeoutConfig:
    """Timeouts en secondes par opération."""

    probe_timeout: float = 5.0
    lag_timeout: float = 5.0
    promotion_timeout: float = 600.0
    propagation_timeout: float = 60.0
    validation_timeout: float = 10.0
    notification_timeout: float = 10.0


@dataclass
class RetryConfig:
    """Configuration des retries (max_attempts inclut le premier essai)."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_exceptions: tuple = field(
        default_factory=lambda: (ConnectionError, TimeoutError)
    )


@dataclass
class RetryResult:
    """Résultat d'une opération avec retry."""

    success: bool
    result: Optional[Any]
    attempts: int
    total_delay: float
    last_error: Optional[Exception]


class ITimeoutManager(ABC):
    """Interface gestion timeouts."""

    @abstractmethod
    def get_timeout(self, timeout_type: TimeoutType) -> float:
        """
        Retourne le timeout configuré pour une opération.

        Args:
            timeout_type: Type d'opération

        Returns:
            Valeur du timeout en secondes
        """
        pass

    @abstractmethod
    def validate_timeout(self, timeout_type: TimeoutType, value: float) -> bool:
        """Vérifie qu'une valeur respecte les bornes de l'opération."""
        pass


class IRetryHandler(ABC):
    """Interface gestion des retries."""

    @abstractmethod
    async def execute_with_retry(
        self,
        func: Callable[..., T],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> RetryResult:
        """
        Exécute func avec retries et backoff exponentiel.

        Returns:
            RetryResult avec succès/échec et détails
        """
        pass

    @abstractmethod
    async def poll_until(
        self,
        predicate: Callable[[], Awaitable[bool]],
        config: Optional[RetryConfig] = None,
    ) -> RetryResult:
        """
        Appelle predicate jusqu'à ce qu'il retourne True ou que le budget soit épuisé.

        Returns:
            RetryResult (success=True dès que predicate retourne True)
        """
        pass

    @abstractmethod
    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Calcule le délai de backoff pour une tentative (0-indexed)."""
        pass
