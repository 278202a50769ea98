"""
Config Loader Implementation

Charge la configuration YAML de l'orchestrateur et la valide
avec le modèle pydantic.
"""

from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError as PydanticValidationError

from .interfaces import IConfigLoader, OrchestratorSettings


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


class ConfigLoader(IConfigLoader):
    """Chargement des configurations depuis fichiers YAML."""

    REQUIRED_FIELDS = ("version", "cluster")

    async def load_raw(self, path: str) -> Dict[str, Any]:
        """
        Charge le fichier YAML brut.

        Args:
            path: Chemin du fichier de configuration

        Returns:
            Configuration sous forme de dictionnaire

        Raises:
            ConfigIntegrityError: Si fichier inexistant ou structure invalide
        """
        config_file = Path(path)

        if not config_file.exists():
            raise ConfigIntegrityError(f"Configuration not found: {path}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"YAML parsing error: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Cannot read configuration file: {e}")

        if not isinstance(config, dict):
            raise ConfigIntegrityError("Configuration must be a YAML mapping")

        self._validate_basic_structure(config)
        return config

    async def load(self, path: str) -> OrchestratorSettings:
        """
        Charge et valide la configuration.

        Raises:
            ConfigIntegrityError: Si la configuration est invalide
        """
        raw = await self.load_raw(path)
        return self.parse(raw)

    def parse(self, raw: Dict[str, Any]) -> OrchestratorSettings:
        """Valide un dictionnaire déjà chargé."""
        try:
            return OrchestratorSettings.model_validate(raw)
        except PydanticValidationError as e:
            raise ConfigIntegrityError(f"Invalid configuration: {e}")

    def _validate_basic_structure(self, config: Dict[str, Any]) -> None:
        """Valide la structure de base avant le modèle complet."""
        for field in self.REQUIRED_FIELDS:
            if field not in config:
                raise ConfigIntegrityError(f"Missing required field: {field}")

        cluster = config["cluster"]
        if not isinstance(cluster, dict) or "regions" not in cluster:
            raise ConfigIntegrityError("cluster.regions missing or invalid")

        if not isinstance(cluster["regions"], list):
            raise ConfigIntegrityError("cluster.regions must be a list")

        if not isinstance(config["version"], str):
            raise ConfigIntegrityError("version must be a string")
