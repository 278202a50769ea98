"""
Cluster Directory

Vue en lecture seule des régions connues (endpoint d'administration et rôle
déclaré). Relue à chaque cycle: un endpoint modifié dans la source est pris
en compte sans redémarrer l'orchestrateur.
"""

from typing import Iterable, List, Optional

from dbfailover.core.config_loader import ConfigLoader
from dbfailover.core.interfaces import OrchestratorSettings, RegionSettings
from dbfailover.ha.interfaces import DirectoryEntry, Endpoint, IClusterDirectory, RegionRole


def entry_from_settings(region: RegionSettings) -> DirectoryEntry:
    """Convertit une région de configuration en entrée de directory."""
    return DirectoryEntry(
        region_id=region.region_id,
        endpoint=Endpoint(
            host=region.host,
            port=region.port,
            database=region.database,
            credentials_ref=region.credentials_ref,
        ),
        role=RegionRole(region.role),
        cluster_identifier=region.db_cluster_identifier,
    )


def entries_from_settings(settings: OrchestratorSettings) -> List[DirectoryEntry]:
    return [entry_from_settings(region) for region in settings.cluster.regions]


class StaticClusterDirectory(IClusterDirectory):
    """Directory figé en mémoire."""

    def __init__(self, entries: Iterable[DirectoryEntry]) -> None:
        self._entries = list(entries)

    async def load(self) -> List[DirectoryEntry]:
        return list(self._entries)


class FileClusterDirectory(IClusterDirectory):
    """Directory relu depuis le fichier YAML de configuration à chaque appel."""

    def __init__(self, config_path: str, loader: Optional[ConfigLoader] = None) -> None:
        """
        Args:
            config_path: Fichier YAML de l'orchestrateur
            loader: ConfigLoader (injectable pour tests)
        """
        self._config_path = config_path
        self._loader = loader or ConfigLoader()

    async def load(self) -> List[DirectoryEntry]:
        """
        Raises:
            ConfigIntegrityError: Si le fichier est absent ou invalide
        """
        settings = await self._loader.load(self._config_path)
        return entries_from_settings(settings)
