"""
Audit - Interfaces

Journal append-only des tentatives de failover.

Chaque FailoverEvent finalisé devient un AuditRecord:
    - hash SHA-384 de la représentation canonique
    - chaînage sur le hash de l'enregistrement précédent
    - signature ECDSA-P384
Un enregistrement ne change plus après ajout.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List

if TYPE_CHECKING:
    from dbfailover.ha.interfaces import FailoverEvent

# Hash précédent du premier enregistrement
GENESIS_HASH = "0" * 96


class AuditLogError(Exception):
    """Erreur d'ajout ou de relecture du journal d'audit."""

    pass


@dataclass(frozen=True)
class AuditRecord:
    sequence: int
    recorded_at: str  # ISO 8601 UTC
    event: Dict[str, Any]
    previous_hash: str
    hash_value: str
    signature: str  # base64
    key_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "recorded_at": self.recorded_at,
            "event": self.event,
            "previous_hash": self.previous_hash,
            "hash_value": self.hash_value,
            "signature": self.signature,
            "key_id": self.key_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditRecord":
        return cls(
            sequence=int(data["sequence"]),
            recorded_at=data["recorded_at"],
            event=dict(data["event"]),
            previous_hash=data["previous_hash"],
            hash_value=data["hash_value"],
            signature=data["signature"],
            key_id=data["key_id"],
        )


class IAuditLog(ABC):
    """Journal d'audit des failovers."""

    @abstractmethod
    async def append(self, event: "FailoverEvent") -> AuditRecord:
        """
        Ajoute un événement finalisé.

        Raises:
            AuditLogError: Événement non finalisé ou écriture impossible
        """
        pass

    @abstractmethod
    def records(self) -> List[AuditRecord]:
        pass

    @abstractmethod
    def verify(self) -> bool:
        """True si chaînage et signatures sont intacts."""
        pass
