"""
Logging - Structured Logger

Logger JSON structuré de l'orchestrateur. Une ligne par événement,
horodatée en UTC, avec correlation_id (une tentative de failover = une
corrélation) et cluster_id.
"""

import sys
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, TextIO, Union

from .interfaces import (
    IStructuredLogger,
    ISensitiveMasker,
    LogConfig,
    LogEntry,
    LogLevel,
)
from .sensitive_masker import SensitiveMasker

OutputHandler = Callable[[str], None]


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant dans une ligne de log."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required log field missing: {field_name}")


def stream_output_handler(stream: Optional[TextIO] = None) -> OutputHandler:
    """
    Crée un handler qui écrit chaque ligne JSON sur un flux texte.

    Args:
        stream: Flux cible (stderr par défaut)
    """
    target = stream or sys.stderr

    def _write(line: str) -> None:
        target.write(line + "\n")
        target.flush()

    return _write


class FileOutputHandler:
    """Ajoute chaque ligne JSON à un fichier de log local (mode append)."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def __call__(self, line: str) -> None:
        with self._lock:
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON structuré avec champs obligatoires.

    Example:
        logger = StructuredLogger("failover-controller")
        logger.set_default_cluster("musicconnect-global-cluster")
        logger.info("Primary probe failed", region="us-east-1", failures=2)
    """

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        masker: Optional[ISensitiveMasker] = None,
        output_handlers: Optional[List[OutputHandler]] = None,
    ) -> None:
        """
        Initialise le logger structuré.

        Args:
            name: Nom du logger (composant émetteur)
            config: Configuration optionnelle
            masker: Masker pour données sensibles
            output_handlers: Destinations des lignes JSON (aucune = capture seule)

        Raises:
            ValueError: Si name vide
        """
        if not name or not name.strip():
            raise ValueError("Logger name cannot be empty")

        self._name = name.strip()
        self._config = config or LogConfig()
        self._masker = masker or SensitiveMasker()
        self._output_handlers: List[OutputHandler] = list(output_handlers or [])
        self._entries: Deque[LogEntry] = deque(maxlen=self._config.max_entries)
        self._default_cluster_id: Optional[str] = self._config.default_cluster_id
        self._default_correlation_id: Optional[str] = self._config.default_correlation_id

    @property
    def name(self) -> str:
        """Retourne le nom du logger."""
        return self._name

    @property
    def config(self) -> LogConfig:
        """Retourne la configuration."""
        return self._config

    def set_default_cluster(self, cluster_id: str) -> None:
        """Définit cluster_id par défaut."""
        self._default_cluster_id = cluster_id

    def set_default_correlation(self, correlation_id: Optional[str]) -> None:
        """Définit correlation_id par défaut."""
        self._default_correlation_id = correlation_id

    def add_output_handler(self, handler: OutputHandler) -> None:
        """Ajoute une destination de sortie."""
        self._output_handlers.append(handler)

    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        cluster_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        Crée une ligne de log structurée.

        Processus:
            1. Vérifie niveau >= min_level
            2. Résout correlation_id (généré si absent) et cluster_id
            3. Masque les données sensibles dans extra
            4. Écrit la ligne JSON sur chaque handler

        Raises:
            MissingRequiredFieldError: Si cluster_id ou message manquant
        """
        if not self._should_log(level):
            return None

        resolved_correlation = correlation_id or self._default_correlation_id or str(uuid.uuid4())

        resolved_cluster = cluster_id or self._default_cluster_id
        if not resolved_cluster:
            raise MissingRequiredFieldError("cluster_id")

        if not message:
            raise MissingRequiredFieldError("message")

        masked_extra: Dict[str, Any] = {}
        if extra and self._config.include_extra:
            if self._config.mask_sensitive:
                masked_extra = self._masker.mask(dict(extra))
            else:
                masked_extra = dict(extra)

        entry = LogEntry(
            timestamp=self._generate_timestamp(),
            level=level,
            correlation_id=resolved_correlation,
            cluster_id=resolved_cluster,
            message=message,
            extra=masked_extra,
            logger_name=self._name,
        )
        self._entries.append(entry)

        json_output = entry.to_json()
        for handler in self._output_handlers:
            handler(json_output)

        return entry

    def _generate_timestamp(self) -> str:
        """Timestamp ISO 8601 UTC avec millisecondes: 2024-12-04T14:30:00.123Z"""
        now = datetime.now(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

    def _should_log(self, level: LogLevel) -> bool:
        return LogLevel.get_priority(level) >= LogLevel.get_priority(self._config.min_level)

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau DEBUG."""
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau INFO."""
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau WARN."""
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau ERROR."""
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau CRITICAL."""
        return self.log(LogLevel.CRITICAL, message, **extra)

    def get_entries(self) -> List[LogEntry]:
        """Retourne les entrées capturées (bornées par max_entries)."""
        return list(self._entries)

    def clear_entries(self) -> None:
        """Efface les entrées capturées."""
        self._entries.clear()

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        """Filtre les entrées par niveau."""
        return [e for e in self._entries if e.level == level]

    def get_entries_by_correlation(self, correlation_id: str) -> List[LogEntry]:
        """Filtre les entrées par correlation_id."""
        return [e for e in self._entries if e.correlation_id == correlation_id]

    def with_context(
        self,
        correlation_id: Optional[str] = None,
        cluster_id: Optional[str] = None,
    ) -> "ContextualLogger":
        """
        Crée un logger avec contexte pré-défini.

        Utilisé pour rattacher toutes les lignes d'une tentative de failover
        au même correlation_id.
        """
        return ContextualLogger(
            self,
            correlation_id=correlation_id or self._default_correlation_id,
            cluster_id=cluster_id or self._default_cluster_id,
        )


class ContextualLogger:
    """
    Logger avec contexte pré-défini.

    Wrapper qui fixe correlation_id et cluster_id pour éviter
    de les répéter à chaque appel.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        correlation_id: Optional[str] = None,
        cluster_id: Optional[str] = None,
    ) -> None:
        self._logger = logger
        self._correlation_id = correlation_id
        self._cluster_id = cluster_id

    @property
    def correlation_id(self) -> Optional[str]:
        return self._correlation_id

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log avec contexte."""
        return self._logger.log(
            level,
            message,
            correlation_id=self._correlation_id,
            cluster_id=self._cluster_id,
            **extra,
        )

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)
