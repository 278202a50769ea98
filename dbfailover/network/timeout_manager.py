"""
Network - Timeout Manager

Gestion centralisée des timeouts par opération. Chaque opération a une
borne haute: un probe ne doit jamais bloquer la boucle de monitoring.
"""

from typing import Dict, Optional

from .interfaces import ITimeoutManager, TimeoutConfig, TimeoutType


class InvalidTimeoutError(Exception):
    """Configuration timeout invalide."""

    pass


class TimeoutManager(ITimeoutManager):
    """Timeouts validés par opération."""

    # Bornes hautes en secondes
    MAX_TIMEOUTS: Dict[TimeoutType, float] = {
        TimeoutType.PROBE: 30.0,
        TimeoutType.LAG: 30.0,
        TimeoutType.PROMOTION: 1800.0,
        TimeoutType.PROPAGATION: 300.0,
        TimeoutType.VALIDATION: 60.0,
        TimeoutType.NOTIFICATION: 30.0,
    }

    def __init__(self, config: Optional[TimeoutConfig] = None) -> None:
        """
        Args:
            config: Timeouts par opération (défauts sinon)

        Raises:
            InvalidTimeoutError: Si une valeur est hors bornes
        """
        self._config = config or TimeoutConfig()
        self._validate_config(self._config)

    def _values(self, config: TimeoutConfig) -> Dict[TimeoutType, float]:
        return {
            TimeoutType.PROBE: config.probe_timeout,
            TimeoutType.LAG: config.lag_timeout,
            TimeoutType.PROMOTION: config.promotion_timeout,
            TimeoutType.PROPAGATION: config.propagation_timeout,
            TimeoutType.VALIDATION: config.validation_timeout,
            TimeoutType.NOTIFICATION: config.notification_timeout,
        }

    def _validate_config(self, config: TimeoutConfig) -> None:
        for timeout_type, value in self._values(config).items():
            if value <= 0:
                raise InvalidTimeoutError(f"{timeout_type.value} timeout must be positive")
            maximum = self.MAX_TIMEOUTS[timeout_type]
            if value > maximum:
                raise InvalidTimeoutError(
                    f"{timeout_type.value} timeout ({value}s) exceeds maximum ({maximum}s)"
                )

    def get_timeout(self, timeout_type: TimeoutType) -> float:
        """
        Retourne le timeout configuré.

        Args:
            timeout_type: Type d'opération

        Returns:
            Valeur du timeout en secondes
        """
        return self._values(self._config)[timeout_type]

    def validate_timeout(self, timeout_type: TimeoutType, value: float) -> bool:
        """True si 0 < value <= borne de l'opération."""
        if value <= 0:
            return False
        return value <= self.MAX_TIMEOUTS[timeout_type]

    def get_config(self) -> TimeoutConfig:
        """Retourne la configuration courante."""
        return self._config
