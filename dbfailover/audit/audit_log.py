"""
Failover Audit Log

Journal append-only signé des FailoverEvent.

Le fichier (optionnel) contient une ligne JSON par enregistrement; au
démarrage les lignes existantes sont relues pour continuer la chaîne.
"""

import asyncio
import base64
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from dbfailover.audit.interfaces import GENESIS_HASH, AuditLogError, AuditRecord, IAuditLog
from dbfailover.core.interfaces import ICryptoProvider

if TYPE_CHECKING:
    from dbfailover.ha.interfaces import FailoverEvent


def canonical_payload(
    sequence: int, recorded_at: str, event: Dict[str, Any], previous_hash: str
) -> bytes:
    """Représentation canonique (clés triées, sans espaces) signée et hachée."""
    data = {
        "sequence": sequence,
        "recorded_at": recorded_at,
        "event": event,
        "previous_hash": previous_hash,
    }
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


class FailoverAuditLog(IAuditLog):
    """
    Example:
        audit = FailoverAuditLog(CryptoProvider(), path="/var/log/dbfailover/audit.jsonl")
        record = await audit.append(event.finalize(FailoverOutcome.SUCCEEDED))
    """

    DEFAULT_KEY_ID = "audit_key"

    def __init__(
        self,
        crypto_provider: ICryptoProvider,
        key_id: str = DEFAULT_KEY_ID,
        path: Optional[Union[str, Path]] = None,
    ) -> None:
        """
        Raises:
            AuditLogError: Fichier existant illisible
        """
        self._crypto = crypto_provider
        self._key_id = key_id
        self._path = Path(path) if path else None
        self._records: List[AuditRecord] = []
        self._lock = asyncio.Lock()
        if self._path is not None and self._path.exists():
            self._records = self._read_file(self._path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def last_hash(self) -> str:
        return self._records[-1].hash_value if self._records else GENESIS_HASH

    async def append(self, event: "FailoverEvent") -> AuditRecord:
        if not event.finalized:
            raise AuditLogError(f"Cannot audit unfinalized failover event {event.event_id}")

        async with self._lock:
            sequence = len(self._records)
            recorded_at = datetime.now(timezone.utc).isoformat()
            event_data = event.to_dict()
            previous_hash = self.last_hash
            payload = canonical_payload(sequence, recorded_at, event_data, previous_hash)

            try:
                signature = self._crypto.sign(payload, self._key_id)
            except Exception as e:
                raise AuditLogError(f"Audit signature failed: {e}") from e

            record = AuditRecord(
                sequence=sequence,
                recorded_at=recorded_at,
                event=event_data,
                previous_hash=previous_hash,
                hash_value=self._crypto.hash(payload),
                signature=base64.b64encode(signature).decode("ascii"),
                key_id=self._key_id,
            )

            if self._path is not None:
                await asyncio.to_thread(self._write_line, record)
            self._records.append(record)
            return record

    def records(self) -> List[AuditRecord]:
        return list(self._records)

    def verify(self) -> bool:
        previous_hash = GENESIS_HASH
        for index, record in enumerate(self._records):
            if record.sequence != index or record.previous_hash != previous_hash:
                return False
            payload = canonical_payload(record.sequence, record.recorded_at, record.event, record.previous_hash)
            if self._crypto.hash(payload) != record.hash_value:
                return False
            try:
                signature = base64.b64decode(record.signature)
            except ValueError:
                return False
            if not self._crypto.verify_signature(payload, signature, record.key_id):
                return False
            previous_hash = record.hash_value
        return True

    def _write_line(self, record: AuditRecord) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record.to_dict(), sort_keys=True, default=str) + "\n")
        except OSError as e:
            raise AuditLogError(f"Cannot write audit log {self._path}: {e}") from e

    @staticmethod
    def _read_file(path: Path) -> List[AuditRecord]:
        records: List[AuditRecord] = []
        try:
            with path.open("r", encoding="utf-8") as handle:
                for line_number, line in enumerate(handle, start=1):
                    if not line.strip():
                        continue
                    try:
                        records.append(AuditRecord.from_dict(json.loads(line)))
                    except (ValueError, KeyError, TypeError) as e:
                        raise AuditLogError(f"Corrupted audit log {path} line {line_number}: {e}") from e
        except OSError as e:
            raise AuditLogError(f"Cannot read audit log {path}: {e}") from e
        return records
