"""
Core Interfaces

Modèle de configuration de l'orchestrateur et contrats du module Core.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class RegionSettings(BaseModel):
    """Une région du cluster telle que déclarée dans le fichier de config."""

    region_id: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = "postgres"
    role: str = "secondary"
    # Préfixe des variables d'environnement <REF>_USER / <REF>_PASSWORD
    credentials_ref: str = "DB"
    db_cluster_identifier: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _check_role(cls, value: str) -> str:
        if value not in ("primary", "secondary"):
            raise ValueError(f"role must be 'primary' or 'secondary', got {value!r}")
        return value


class ClusterSettings(BaseModel):
    """Topologie du cluster global."""

    cluster_id: str = Field(min_length=1)
    global_cluster_identifier: Optional[str] = None
    # "file": endpoints du fichier, "rds": endpoints découverts via describe_db_clusters
    directory: str = "file"
    regions: List[RegionSettings]

    @field_validator("directory")
    @classmethod
    def _check_directory(cls, value: str) -> str:
        if value not in ("file", "rds"):
            raise ValueError(f"directory must be 'file' or 'rds', got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_topology(self) -> "ClusterSettings":
        if len(self.regions) < 2:
            raise ValueError("cluster needs at least 2 regions (one primary, one secondary)")

        ids = [r.region_id for r in self.regions]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate region ids: {', '.join(duplicates)}")

        primaries = [r.region_id for r in self.regions if r.role == "primary"]
        if len(primaries) != 1:
            raise ValueError(f"exactly one primary region required, found {len(primaries)}")
        return self


class MonitoringSettings(BaseModel):
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    failure_threshold: int = Field(default=3, ge=1)
    probe_timeout_seconds: float = Field(default=5.0, gt=0)
    lag_timeout_seconds: float = Field(default=5.0, gt=0)


class SelectionSettings(BaseModel):
    max_staleness_seconds: float = Field(default=300.0, gt=0)


class PromotionSettings(BaseModel):
    # failover_global_cluster (atomique) plutôt que détachement + promotion
    managed_failover: bool = True
    ack_max_attempts: int = Field(default=10, ge=1)
    ack_initial_delay_seconds: float = Field(default=5.0, ge=0)
    ack_max_delay_seconds: float = Field(default=30.0, ge=0)
    timeout_seconds: float = Field(default=600.0, gt=0)
    promoted_global_cluster_identifier: Optional[str] = None


class PropagationSettings(BaseModel):
    record_name: str = "db-primary.example.com"
    hosted_zone_env: str = "HOSTED_ZONE_ID"
    ttl_seconds: int = Field(default=60, ge=1, le=60)
    namespace: str = "default"
    configmap: str = "database-config"
    restart_deployments: bool = True
    in_cluster: bool = False
    timeout_seconds: float = Field(default=60.0, gt=0)


class ValidationSettings(BaseModel):
    timeout_seconds: float = Field(default=10.0, gt=0)
    table: str = "failover_validation"


class NotificationSettings(BaseModel):
    slack_webhook_env: str = "SLACK_WEBHOOK_URL"
    pagerduty_routing_key_env: str = "PAGERDUTY_ROUTING_KEY"
    source: str = "dbfailover"
    timeout_seconds: float = Field(default=10.0, gt=0)


class AuditSettings(BaseModel):
    log_path: Optional[str] = None
    signing_key_path: Optional[str] = None


class LeaseSettings(BaseModel):
    # Sans table, verrou local au processus uniquement
    table_name: Optional[str] = None
    aws_region: Optional[str] = None
    ttl_seconds: float = Field(default=900.0, gt=0)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Optional[str] = None


class OrchestratorSettings(BaseModel):
    """Configuration complète de l'orchestrateur."""

    version: str
    cluster: ClusterSettings
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    promotion: PromotionSettings = Field(default_factory=PromotionSettings)
    propagation: PropagationSettings = Field(default_factory=PropagationSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    lease: LeaseSettings = Field(default_factory=LeaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def primary_region(self) -> RegionSettings:
        return next(r for r in self.cluster.regions if r.role == "primary")


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge et valide la configuration de l'orchestrateur."""

    @abstractmethod
    async def load_raw(self, path: str) -> Dict[str, Any]:
        """
        Charge le fichier YAML brut.

        Raises:
            ConfigIntegrityError: Fichier absent, YAML invalide ou structure incorrecte
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> OrchestratorSettings:
        """
        Charge et valide la configuration.

        Raises:
            ConfigIntegrityError: Si la configuration est invalide
        """
        pass


class ICryptoProvider(ABC):
    """Signature des enregistrements d'audit."""

    @abstractmethod
    def sign(self, data: bytes, key_id: str) -> bytes:
        """
        Signe des données avec ECDSA-P384.

        Returns:
            Signature DER-encoded
        """
        pass

    @abstractmethod
    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        """Vérifie une signature ECDSA-P384."""
        pass

    @abstractmethod
    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-384.

        Returns:
            Hash hex string (96 caractères)
        """
        pass
