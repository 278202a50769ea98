"""
HA

Failover multi-région du primaire de base de données:
- Détection de panne du primaire (probes bornés, seuil d'échecs consécutifs)
- Sélection du secondaire le plus à jour (lag < seuil de staleness)
- Promotion, propagation de la configuration, validation en écriture
- Notification des opérateurs
"""

from .interfaces import (
    INFINITE_LAG,
    # Enums
    HealthStatus,
    RegionRole,
    ControllerState,
    FailoverOutcome,
    Severity,
    CandidateReason,
    # Data classes
    Endpoint,
    Region,
    DirectoryEntry,
    ClusterState,
    ProbeResult,
    LagResult,
    CandidateReport,
    SelectionResult,
    PromotionResult,
    PropagationResult,
    ValidationResult,
    FailoverEvent,
    StateTransition,
    # Capabilities
    IDatabaseClient,
    IClusterAdmin,
    IAppConfigStore,
    INameRecordUpdater,
    INotificationChannel,
    ILeaseLock,
    # Components
    IClusterDirectory,
    IHealthProber,
    ILagEvaluator,
    ICandidateSelector,
    IPromoter,
    IConfigPropagator,
    IValidator,
    INotifier,
    # Exceptions
    FailoverError,
    ProbeError,
    NoEligibleCandidateError,
    PromotionError,
    PropagationError,
    ValidationError,
)
from .cluster_directory import (
    StaticClusterDirectory,
    FileClusterDirectory,
    entry_from_settings,
    entries_from_settings,
)
from .health_prober import HealthProber
from .lag_evaluator import LagEvaluator
from .candidate_selector import CandidateSelector, classify, rank_candidates
from .promoter import Promoter, default_ack_config
from .config_propagator import ConfigPropagator, MAX_TTL_SECONDS
from .validator import Validator, make_marker
from .notifier import Notifier, build_summary
from .lease_lock import LocalLeaseLock
from .failover_controller import FailoverController

__all__ = [
    "INFINITE_LAG",
    # Enums
    "HealthStatus",
    "RegionRole",
    "ControllerState",
    "FailoverOutcome",
    "Severity",
    "CandidateReason",
    # Data classes
    "Endpoint",
    "Region",
    "DirectoryEntry",
    "ClusterState",
    "ProbeResult",
    "LagResult",
    "CandidateReport",
    "SelectionResult",
    "PromotionResult",
    "PropagationResult",
    "ValidationResult",
    "FailoverEvent",
    "StateTransition",
    # Capabilities
    "IDatabaseClient",
    "IClusterAdmin",
    "IAppConfigStore",
    "INameRecordUpdater",
    "INotificationChannel",
    "ILeaseLock",
    # Components
    "IClusterDirectory",
    "IHealthProber",
    "ILagEvaluator",
    "ICandidateSelector",
    "IPromoter",
    "IConfigPropagator",
    "IValidator",
    "INotifier",
    # Implementations
    "StaticClusterDirectory",
    "FileClusterDirectory",
    "entry_from_settings",
    "entries_from_settings",
    "HealthProber",
    "LagEvaluator",
    "CandidateSelector",
    "classify",
    "rank_candidates",
    "Promoter",
    "default_ack_config",
    "ConfigPropagator",
    "MAX_TTL_SECONDS",
    "Validator",
    "make_marker",
    "Notifier",
    "build_summary",
    "LocalLeaseLock",
    "FailoverController",
    # Exceptions
    "FailoverError",
    "ProbeError",
    "NoEligibleCandidateError",
    "PromotionError",
    "PropagationError",
    "ValidationError",
]
