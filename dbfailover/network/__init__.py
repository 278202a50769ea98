"""
Network

- Timeouts bornés par opération (probe, lag, promotion, propagation, validation, notification)
- Retry avec backoff exponentiel et polling d'acquittement borné
"""

from .interfaces import (
    # Enums
    TimeoutType,
    # Data classes
    TimeoutConfig,
    RetryConfig,
    RetryResult,
    # Interfaces
    ITimeoutManager,
    IRetryHandler,
)
from .timeout_manager import TimeoutManager, InvalidTimeoutError
from .retry_handler import RetryHandler, MaxRetriesExceededError, with_retry

__all__ = [
    # Enums
    "TimeoutType",
    # Data classes
    "TimeoutConfig",
    "RetryConfig",
    "RetryResult",
    # Interfaces
    "ITimeoutManager",
    "IRetryHandler",
    # Implementations
    "TimeoutManager",
    "RetryHandler",
    # Decorators
    "with_retry",
    # Exceptions
    "InvalidTimeoutError",
    "MaxRetriesExceededError",
]
