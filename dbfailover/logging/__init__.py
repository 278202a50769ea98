"""
Logging

Logging structuré JSON de l'orchestrateur:
- Une ligne JSON par événement (timestamp UTC, level, correlation_id, cluster_id, message)
- Une ligne par transition d'état du contrôleur (state, region, outcome)
- Masquage des identifiants et secrets
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    IStructuredLogger,
    ISensitiveMasker,
)
from .sensitive_masker import SensitiveMasker
from .structured_logger import (
    StructuredLogger,
    ContextualLogger,
    FileOutputHandler,
    stream_output_handler,
    # Exceptions
    MissingRequiredFieldError,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "IStructuredLogger",
    "ISensitiveMasker",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "ContextualLogger",
    "FileOutputHandler",
    "stream_output_handler",
    # Exceptions
    "MissingRequiredFieldError",
]
