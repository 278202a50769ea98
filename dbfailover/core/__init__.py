"""
Core

Configuration (YAML + pydantic), secrets d'environnement et signature.
"""

from .interfaces import (
    OrchestratorSettings,
    ClusterSettings,
    RegionSettings,
    MonitoringSettings,
    SelectionSettings,
    PromotionSettings,
    PropagationSettings,
    ValidationSettings,
    NotificationSettings,
    AuditSettings,
    LeaseSettings,
    LoggingSettings,
    IConfigLoader,
    ICryptoProvider,
)
from .config_loader import ConfigLoader, ConfigIntegrityError
from .credentials import EnvironmentCredentials, DatabaseCredentials, MissingCredentialError
from .crypto_provider import CryptoProvider

__all__ = [
    "OrchestratorSettings",
    "ClusterSettings",
    "RegionSettings",
    "MonitoringSettings",
    "SelectionSettings",
    "PromotionSettings",
    "PropagationSettings",
    "ValidationSettings",
    "NotificationSettings",
    "AuditSettings",
    "LeaseSettings",
    "LoggingSettings",
    "IConfigLoader",
    "ICryptoProvider",
    "ConfigLoader",
    "ConfigIntegrityError",
    "EnvironmentCredentials",
    "DatabaseCredentials",
    "MissingCredentialError",
    "CryptoProvider",
]
