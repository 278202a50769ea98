"""
HA Interfaces

Modèle de données et contrats de l'orchestrateur de failover multi-région.

Le ClusterState est une valeur immuable: chaque transition réussie produit
un nouvel état (mise à jour fonctionnelle), jamais une modification en place.
Les composants reçoivent des instantanés et retournent des résultats typés.
"""

import math
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

# Lag sentinelle quand la métrique est indisponible
INFINITE_LAG: float = math.inf


class HealthStatus(Enum):
    """Dernier état de santé observé d'une région."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class RegionRole(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ControllerState(Enum):
    """États de la machine à états du contrôleur."""

    MONITORING = "monitoring"
    DETECTING = "detecting"
    SELECTING_CANDIDATE = "selecting_candidate"
    PROMOTING = "promoting"
    PROPAGATING = "propagating"
    VALIDATING = "validating"
    STABLE = "stable"
    FAILED = "failed"


class FailoverOutcome(Enum):
    SUCCEEDED = "succeeded"
    ABORTED_NO_CANDIDATE = "aborted_no_candidate"
    PROMOTION_FAILED = "promotion_failed"
    PROPAGATION_FAILED = "propagation_failed"
    VALIDATION_FAILED = "validation_failed"

    @property
    def promotion_happened(self) -> bool:
        """True si la cible a été promue (succès ou échec après promotion)."""
        return self in (
            FailoverOutcome.SUCCEEDED,
            FailoverOutcome.PROPAGATION_FAILED,
            FailoverOutcome.VALIDATION_FAILED,
        )


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class CandidateReason(Enum):
    """Pourquoi un secondaire est (ou n'est pas) éligible à la promotion."""

    ELIGIBLE = "eligible"
    UNHEALTHY = "unhealthy"
    LAG_UNKNOWN = "lag_unknown"
    LAG_EXCEEDS_THRESHOLD = "lag_exceeds_threshold"


# ══════════════════════════════════════════════════════════════════════════════
# ERREURS
# ══════════════════════════════════════════════════════════════════════════════


class FailoverError(Exception):
    """Base des erreurs du failover."""

    pass


class ProbeError(FailoverError):
    """Échec transitoire d'un probe. Journalisé, jamais remonté au contrôleur."""

    pass


class NoEligibleCandidateError(FailoverError):
    """Aucun secondaire sain sous le seuil de staleness. Arrêt franc."""

    def __init__(self, message: str, reports: Iterable["CandidateReport"] = ()) -> None:
        self.reports = tuple(reports)
        super().__init__(message)


class PromotionError(FailoverError):
    """Une étape de la promotion a échoué; vérification manuelle requise."""

    def __init__(self, message: str, step: str = "") -> None:
        self.step = step
        super().__init__(message)


class PropagationError(FailoverError):
    """Promotion réussie mais routage non mis à jour."""

    def __init__(self, message: str, result: Optional["PropagationResult"] = None) -> None:
        self.result = result
        super().__init__(message)


class ValidationError(FailoverError):
    """Le nouveau primaire a refusé l'écriture de validation."""

    pass


# ══════════════════════════════════════════════════════════════════════════════
# MODÈLE DE DONNÉES
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Endpoint:
    """Endpoint d'administration d'une région."""

    host: str
    port: int = 5432
    database: str = "postgres"
    # Préfixe des variables d'environnement portant user/password
    credentials_ref: str = "DB"

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Region:
    region_id: str
    endpoint: Endpoint
    role: RegionRole = RegionRole.SECONDARY
    health: HealthStatus = HealthStatus.UNKNOWN
    lag_seconds: Optional[float] = None
    cluster_identifier: Optional[str] = None

    @property
    def is_primary(self) -> bool:
        return self.role == RegionRole.PRIMARY

    def with_observation(self, health: HealthStatus, lag_seconds: Optional[float] = None) -> "Region":
        return replace(self, health=health, lag_seconds=lag_seconds)

    def with_role(self, role: RegionRole) -> "Region":
        return replace(self, role=role)


@dataclass(frozen=True)
class DirectoryEntry:
    """Une région telle que fournie par le Cluster Directory."""

    region_id: str
    endpoint: Endpoint
    role: RegionRole = RegionRole.SECONDARY
    cluster_identifier: Optional[str] = None

    def to_region(self) -> Region:
        return Region(
            region_id=self.region_id,
            endpoint=self.endpoint,
            role=self.role,
            cluster_identifier=self.cluster_identifier,
        )


@dataclass(frozen=True)
class ClusterState:
    """
    Instantané immuable du cluster.

    Invariant: exactement une région a le rôle primary et son id est primary_id.
    """

    primary_id: str
    regions: Tuple[Region, ...]
    generation: int = 0

    def __post_init__(self) -> None:
        ids = [r.region_id for r in self.regions]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate region ids in cluster state")
        primaries = [r.region_id for r in self.regions if r.is_primary]
        if primaries != [self.primary_id]:
            raise ValueError(
                f"cluster state must have exactly one primary ({self.primary_id}), found {primaries}"
            )
        if self.generation < 0:
            raise ValueError("generation must be >= 0")

    @classmethod
    def from_directory(cls, entries: Iterable[DirectoryEntry]) -> "ClusterState":
        """
        Construit l'état initial (génération 0) depuis le directory.

        Raises:
            ValueError: Si le directory ne désigne pas exactement un primaire
        """
        regions = tuple(entry.to_region() for entry in entries)
        primaries = [r.region_id for r in regions if r.is_primary]
        if len(primaries) != 1:
            raise ValueError(f"directory must designate exactly one primary, found {len(primaries)}")
        return cls(primary_id=primaries[0], regions=regions, generation=0)

    @property
    def primary(self) -> Region:
        return self.get(self.primary_id)

    @property
    def secondaries(self) -> Tuple[Region, ...]:
        return tuple(r for r in self.regions if not r.is_primary)

    def get(self, region_id: str) -> Region:
        """
        Raises:
            KeyError: Région inconnue
        """
        for region in self.regions:
            if region.region_id == region_id:
                return region
        raise KeyError(region_id)

    def with_observation(
        self, region_id: str, health: HealthStatus, lag_seconds: Optional[float] = None
    ) -> "ClusterState":
        """Nouvel état avec la dernière observation d'une région."""
        self.get(region_id)
        regions = tuple(
            r.with_observation(health, lag_seconds) if r.region_id == region_id else r
            for r in self.regions
        )
        return replace(self, regions=regions)

    def with_promoted(self, region_id: str) -> "ClusterState":
        """
        Nouvel état où region_id est primaire, l'ancien primaire secondaire,
        et la génération incrémentée de un.
        """
        target = self.get(region_id)
        if target.is_primary:
            raise ValueError(f"{region_id} is already primary")
        regions = tuple(
            r.with_role(RegionRole.PRIMARY)
            if r.region_id == region_id
            else r.with_role(RegionRole.SECONDARY)
            for r in self.regions
        )
        return ClusterState(primary_id=region_id, regions=regions, generation=self.generation + 1)

    def with_directory(self, entries: Iterable[DirectoryEntry]) -> "ClusterState":
        """
        Applique un rafraîchissement du directory.

        Les rôles restent ceux de l'état (le contrôleur en est propriétaire):
        les endpoints sont mis à jour, les nouvelles régions arrivent en
        secondaire, les régions absentes sont retirées sauf le primaire.
        """
        by_id: Dict[str, DirectoryEntry] = {e.region_id: e for e in entries}
        regions: List[Region] = []
        for region in self.regions:
            entry = by_id.pop(region.region_id, None)
            if entry is None:
                if region.is_primary:
                    regions.append(region)
                continue
            regions.append(
                replace(region, endpoint=entry.endpoint, cluster_identifier=entry.cluster_identifier)
            )
        for entry in by_id.values():
            regions.append(replace(entry.to_region(), role=RegionRole.SECONDARY))
        return replace(self, regions=tuple(regions))


@dataclass(frozen=True)
class ProbeResult:
    region_id: str
    status: HealthStatus
    latency_ms: Optional[int] = None
    error: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY


@dataclass(frozen=True)
class LagResult:
    region_id: str
    lag_seconds: float
    error: Optional[str] = None

    @property
    def known(self) -> bool:
        return not math.isinf(self.lag_seconds)


@dataclass(frozen=True)
class CandidateReport:
    """Observation d'un secondaire pendant la sélection."""

    region_id: str
    health: HealthStatus
    lag_seconds: Optional[float]
    reason: CandidateReason

    @property
    def eligible(self) -> bool:
        return self.reason == CandidateReason.ELIGIBLE

    def to_dict(self) -> Dict[str, Any]:
        lag = self.lag_seconds
        return {
            "region_id": self.region_id,
            "health": self.health.value,
            "lag_seconds": None if lag is None or math.isinf(lag) else lag,
            "reason": self.reason.value,
        }


@dataclass(frozen=True)
class SelectionResult:
    """Candidat choisi ou None (aucun candidat éligible)."""

    candidate: Optional[Region]
    reports: Tuple[CandidateReport, ...] = ()

    @property
    def has_candidate(self) -> bool:
        return self.candidate is not None

    def require_candidate(self) -> Region:
        """
        Raises:
            NoEligibleCandidateError: Aucun secondaire éligible (rapports joints)
        """
        if self.candidate is None:
            raise NoEligibleCandidateError(
                "No healthy secondary below the staleness threshold", self.reports
            )
        return self.candidate


@dataclass(frozen=True)
class PromotionResult:
    region_id: str
    atomic: bool
    steps: Tuple[str, ...] = ()
    ack_attempts: int = 0


@dataclass(frozen=True)
class PropagationResult:
    region_id: str
    app_config_updated: bool
    dns_updated: bool
    errors: Tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return self.app_config_updated and self.dns_updated


@dataclass(frozen=True)
class ValidationResult:
    region_id: str
    success: bool
    marker: Optional[str] = None
    latency_ms: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class FailoverEvent:
    """
    Trace d'une tentative de failover.

    Créée au début de la tentative, finalisée une seule fois à la fin,
    immuable ensuite et ajoutée au journal d'audit.
    """

    event_id: str
    trigger_reason: str
    started_at: datetime
    previous_primary: str
    generation: int
    candidates_considered: Tuple[CandidateReport, ...] = ()
    target: Optional[str] = None
    outcome: Optional[FailoverOutcome] = None
    detail: str = ""
    finished_at: Optional[datetime] = None

    @classmethod
    def start(cls, trigger_reason: str, state: ClusterState) -> "FailoverEvent":
        return cls(
            event_id=str(uuid.uuid4()),
            trigger_reason=trigger_reason,
            started_at=datetime.now(timezone.utc),
            previous_primary=state.primary_id,
            generation=state.generation,
        )

    @property
    def finalized(self) -> bool:
        return self.outcome is not None

    def with_candidates(
        self, reports: Iterable[CandidateReport], target: Optional[str]
    ) -> "FailoverEvent":
        if self.finalized:
            raise ValueError("failover event already finalized")
        return replace(self, candidates_considered=tuple(reports), target=target)

    def finalize(self, outcome: FailoverOutcome, detail: str = "") -> "FailoverEvent":
        """
        Raises:
            ValueError: Si l'événement est déjà finalisé
        """
        if self.finalized:
            raise ValueError("failover event already finalized")
        return replace(
            self,
            outcome=outcome,
            detail=detail,
            finished_at=datetime.now(timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "trigger_reason": self.trigger_reason,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "previous_primary": self.previous_primary,
            "generation": self.generation,
            "candidates_considered": [r.to_dict() for r in self.candidates_considered],
            "target": self.target,
            "outcome": self.outcome.value if self.outcome else None,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class StateTransition:
    """Une ligne de l'historique des transitions du contrôleur."""

    state: ControllerState
    at: datetime
    region: Optional[str] = None
    outcome: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════════
# CAPACITÉS EXTERNES (adapters)
# ══════════════════════════════════════════════════════════════════════════════


class IDatabaseClient(ABC):
    """Canal requête/santé vers un noeud de base de données."""

    @abstractmethod
    async def ping(self, endpoint: Endpoint) -> None:
        """
        Lecture triviale de vivacité.

        Raises:
            Exception: Toute erreur de connexion, d'authentification ou de requête
        """
        pass

    @abstractmethod
    async def replication_lag(self, endpoint: Endpoint) -> Optional[float]:
        """Retard de réplication en secondes, None si indisponible."""
        pass

    @abstractmethod
    async def write_marker(self, endpoint: Endpoint, region_id: str, marker: str) -> None:
        """
        Insère une ligne marqueur horodatée.

        Raises:
            Exception: Si l'écriture est refusée
        """
        pass


class IClusterAdmin(ABC):
    """Opérations d'administration détachement / promotion."""

    @property
    @abstractmethod
    def supports_atomic_promotion(self) -> bool:
        """True si la plateforme offre une promotion atomique."""
        pass

    @abstractmethod
    async def promote_atomic(self, region: Region) -> None:
        """Promotion atomique (un seul appel plateforme)."""
        pass

    @abstractmethod
    async def is_writer(self, region: Region) -> bool:
        """True quand la région est acquittée comme primaire en écriture."""
        pass

    @abstractmethod
    async def detach(self, region: Region) -> None:
        """Détache la région de son rôle de réplica."""
        pass

    @abstractmethod
    async def is_detached(self, region: Region) -> bool:
        """True quand le détachement est acquitté."""
        pass

    @abstractmethod
    async def promote(self, region: Region) -> None:
        """Rend la région détachée inscriptible comme nouveau primaire."""
        pass


class IAppConfigStore(ABC):
    """Store de configuration lu par les instances applicatives."""

    @abstractmethod
    async def publish_primary(self, region_id: str, endpoint: Endpoint) -> None:
        pass


class INameRecordUpdater(ABC):
    """Mise à jour du nom canonique du primaire (DNS)."""

    @abstractmethod
    async def upsert_primary(self, endpoint: Endpoint, ttl_seconds: int) -> None:
        pass


class INotificationChannel(ABC):
    """Canal opérateur (webhook chat, paging)."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def send(self, summary: str, severity: Severity, details: Dict[str, Any]) -> None:
        """
        Raises:
            Exception: Si la livraison échoue (le Notifier l'absorbe)
        """
        pass


class ILeaseLock(ABC):
    """Verrou exclusif entre processus orchestrateurs."""

    @abstractmethod
    async def acquire(self, owner: str) -> bool:
        """True si le verrou est obtenu (ou déjà détenu par owner)."""
        pass

    @abstractmethod
    async def release(self, owner: str) -> None:
        pass


# ══════════════════════════════════════════════════════════════════════════════
# COMPOSANTS
# ══════════════════════════════════════════════════════════════════════════════


class IClusterDirectory(ABC):
    """Vue en lecture seule des régions connues."""

    @abstractmethod
    async def load(self) -> List[DirectoryEntry]:
        """
        Lit les régions connues avec endpoint et rôle déclaré.

        Raises:
            Exception: Si la source est illisible
        """
        pass


class IHealthProber(ABC):
    @abstractmethod
    async def probe(self, region: Region) -> ProbeResult:
        """Classe la région healthy/unhealthy. Ne lève jamais."""
        pass


class ILagEvaluator(ABC):
    @abstractmethod
    async def evaluate(self, region: Region) -> LagResult:
        """Retard de réplication, INFINITE_LAG en cas d'échec. Ne lève jamais."""
        pass


class ICandidateSelector(ABC):
    @abstractmethod
    async def select(self, state: ClusterState) -> SelectionResult:
        """Choisit la cible de promotion ou retourne candidate=None."""
        pass


class IPromoter(ABC):
    @abstractmethod
    async def promote(self, target: Region, state: ClusterState) -> PromotionResult:
        """
        Raises:
            PromotionError: Si une étape échoue
        """
        pass


class IConfigPropagator(ABC):
    @abstractmethod
    async def propagate(self, region: Region, state: ClusterState) -> PropagationResult:
        """
        Raises:
            PropagationError: Si un des consommateurs n'acquitte pas
        """
        pass


class IValidator(ABC):
    @abstractmethod
    async def validate(self, region: Region) -> ValidationResult:
        """Écriture réelle sur le nouveau primaire. Ne lève jamais."""
        pass


class INotifier(ABC):
    @abstractmethod
    async def notify(
        self, event: FailoverEvent, severity: Severity, summary: Optional[str] = None
    ) -> int:
        """Livraison best-effort; retourne le nombre de canaux livrés."""
        pass
