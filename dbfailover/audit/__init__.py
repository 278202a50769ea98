"""
Audit

Journal append-only des failovers: hash SHA-384 chaîné, signature ECDSA-P384.
"""

from .interfaces import GENESIS_HASH, AuditLogError, AuditRecord, IAuditLog
from .audit_log import FailoverAuditLog, canonical_payload

__all__ = [
    "GENESIS_HASH",
    "AuditLogError",
    "AuditRecord",
    "IAuditLog",
    "FailoverAuditLog",
    "canonical_payload",
]
