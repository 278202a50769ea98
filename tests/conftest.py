"""
dbfailover - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from pathlib import Path

import pytest

from dbfailover.ha.interfaces import ClusterState, Endpoint, Region, RegionRole
from dbfailover.logging import LogConfig, LogLevel, StructuredLogger


def _region(region_id: str, primary: bool = False, cluster_identifier: str = None) -> Region:
    return Region(
        region_id=region_id,
        endpoint=Endpoint(host=f"db.{region_id}.internal"),
        role=RegionRole.PRIMARY if primary else RegionRole.SECONDARY,
        cluster_identifier=cluster_identifier,
    )


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def valid_cluster_config(fixtures_path: Path) -> dict:
    """Charge la configuration de cluster valide."""
    import yaml

    config_path = fixtures_path / "configs" / "valid_cluster.yaml"
    with open(config_path) as f:
        return yaml.safe_load(f)


@pytest.fixture
def logger() -> StructuredLogger:
    """Logger en capture seule (aucune sortie)."""
    return StructuredLogger(
        "test",
        config=LogConfig(min_level=LogLevel.DEBUG, default_cluster_id="test-cluster"),
    )


@pytest.fixture
def cluster_state() -> ClusterState:
    """Primaire us-east-1, secondaires us-west-2 et eu-west-1."""
    return ClusterState(
        primary_id="us-east-1",
        regions=(
            _region("us-east-1", primary=True),
            _region("us-west-2"),
            _region("eu-west-1"),
        ),
    )


@pytest.fixture
def make_region():
    """Fabrique de régions: make_region("us-west-2", primary=False)."""
    return _region
