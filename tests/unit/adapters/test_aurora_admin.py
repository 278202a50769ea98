"""
Tests unitaires AuroraGlobalClusterAdmin et RdsClusterDirectory

Le client boto3 rds est un MagicMock injecté par client_factory.
"""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from dbfailover.adapters.aurora import (
    AuroraGlobalClusterAdmin,
    RdsClusterDirectory,
    cluster_identifier_for,
)
from dbfailover.ha.interfaces import DirectoryEntry, Endpoint, RegionRole

WEST_ARN = "arn:aws:rds:us-west-2:123456789012:cluster:orders-us-west-2"
EAST_ARN = "arn:aws:rds:us-east-1:123456789012:cluster:orders-us-east-1"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def global_members(*members):
    return {"GlobalClusters": [{"GlobalClusterMembers": list(members)}]}


@pytest.fixture
def rds():
    client = MagicMock()
    client.describe_db_clusters.return_value = {
        "DBClusters": [{"DBClusterArn": WEST_ARN, "Endpoint": "orders-west.cluster-abc.rds.amazonaws.com", "Port": 5432}]
    }
    client.describe_global_clusters.return_value = global_members(
        {"DBClusterArn": EAST_ARN, "IsWriter": True},
        {"DBClusterArn": WEST_ARN, "IsWriter": False},
    )
    return client


@pytest.fixture
def west(make_region):
    return make_region("us-west-2")


def build_admin(rds, **kwargs):
    params = dict(cluster_id="orders", client_factory=lambda region_id: rds)
    params.update(kwargs)
    return AuroraGlobalClusterAdmin("orders-global", **params)


# ══════════════════════════════════════════════════════════════════════════════
# TESTS PROMOTION ATOMIQUE
# ══════════════════════════════════════════════════════════════════════════════


class TestAtomicPromotion:
    @pytest.mark.asyncio
    async def test_failover_global_cluster(self, rds, west):
        admin = build_admin(rds)

        await admin.promote_atomic(west)

        rds.describe_db_clusters.assert_called_once_with(DBClusterIdentifier="orders-us-west-2")
        rds.failover_global_cluster.assert_called_once_with(
            GlobalClusterIdentifier="orders-global",
            TargetDbClusterIdentifier=WEST_ARN,
            AllowDataLoss=True,
        )

    @pytest.mark.asyncio
    async def test_is_writer(self, rds, west):
        admin = build_admin(rds)
        assert await admin.is_writer(west) is False

        rds.describe_global_clusters.return_value = global_members(
            {"DBClusterArn": WEST_ARN, "IsWriter": True}
        )
        assert await admin.is_writer(west) is True

    @pytest.mark.asyncio
    async def test_arn_cached(self, rds, west):
        admin = build_admin(rds)

        await admin.is_writer(west)
        await admin.is_writer(west)

        rds.describe_db_clusters.assert_called_once()

    def test_supports_atomic_promotion(self, rds):
        assert build_admin(rds).supports_atomic_promotion is True
        assert build_admin(rds, managed_failover=False).supports_atomic_promotion is False


# ══════════════════════════════════════════════════════════════════════════════
# TESTS SÉQUENCE DÉTACHER / PROMOUVOIR
# ══════════════════════════════════════════════════════════════════════════════


class TestSequence:
    @pytest.mark.asyncio
    async def test_detach(self, rds, west):
        await build_admin(rds, managed_failover=False).detach(west)

        rds.remove_from_global_cluster.assert_called_once_with(
            GlobalClusterIdentifier="orders-global",
            DbClusterIdentifier=WEST_ARN,
        )

    @pytest.mark.asyncio
    async def test_detach_replay_tolerated(self, rds, west):
        rds.remove_from_global_cluster.side_effect = client_error(
            "InvalidGlobalClusterStateFault", "RemoveFromGlobalCluster"
        )
        rds.describe_global_clusters.return_value = global_members({"DBClusterArn": EAST_ARN, "IsWriter": True})

        await build_admin(rds, managed_failover=False).detach(west)

    @pytest.mark.asyncio
    async def test_detach_state_fault_while_member_raises(self, rds, west):
        rds.remove_from_global_cluster.side_effect = client_error(
            "InvalidGlobalClusterStateFault", "RemoveFromGlobalCluster"
        )

        with pytest.raises(ClientError):
            await build_admin(rds, managed_failover=False).detach(west)

    @pytest.mark.asyncio
    async def test_is_detached(self, rds, west):
        admin = build_admin(rds, managed_failover=False)
        assert await admin.is_detached(west) is False

        rds.describe_global_clusters.return_value = global_members({"DBClusterArn": EAST_ARN, "IsWriter": True})
        assert await admin.is_detached(west) is True

    @pytest.mark.asyncio
    async def test_promote_creates_new_global_cluster(self, rds, west):
        admin = build_admin(rds, managed_failover=False)

        await admin.promote(west)

        rds.create_global_cluster.assert_called_once_with(
            GlobalClusterIdentifier="orders-global-new",
            SourceDBClusterIdentifier=WEST_ARN,
        )

    @pytest.mark.asyncio
    async def test_promote_replay_tolerated(self, rds, west):
        rds.create_global_cluster.side_effect = client_error("GlobalClusterAlreadyExistsFault", "CreateGlobalCluster")
        rds.describe_global_clusters.return_value = global_members({"DBClusterArn": WEST_ARN, "IsWriter": True})

        await build_admin(rds, managed_failover=False).promote(west)

        rds.describe_global_clusters.assert_called_with(GlobalClusterIdentifier="orders-global-new")

    @pytest.mark.asyncio
    async def test_successive_promotions_follow_new_global_cluster(self, rds, west, make_region):
        """Deux failovers non atomiques: le second détache du global cluster créé par le premier."""
        arns = {"orders-us-west-2": WEST_ARN, "orders-us-east-1": EAST_ARN}
        rds.describe_db_clusters.side_effect = lambda DBClusterIdentifier: {
            "DBClusters": [{"DBClusterArn": arns[DBClusterIdentifier]}]
        }
        east = make_region("us-east-1")
        admin = build_admin(rds, managed_failover=False)

        await admin.promote(west)
        assert admin.global_cluster_identifier == "orders-global-new"

        await admin.detach(east)
        await admin.promote(east)

        rds.remove_from_global_cluster.assert_called_once_with(
            GlobalClusterIdentifier="orders-global-new",
            DbClusterIdentifier=EAST_ARN,
        )
        assert [c.kwargs["GlobalClusterIdentifier"] for c in rds.create_global_cluster.call_args_list] == [
            "orders-global-new",
            "orders-global-new-2",
        ]
        assert admin.global_cluster_identifier == "orders-global-new-2"
        assert admin.promoted_global_cluster_identifier == "orders-global-new-3"

    @pytest.mark.asyncio
    async def test_failed_promotion_keeps_global_cluster(self, rds, west):
        rds.create_global_cluster.side_effect = client_error("AccessDenied", "CreateGlobalCluster")
        admin = build_admin(rds, managed_failover=False)

        with pytest.raises(ClientError):
            await admin.promote(west)

        assert admin.global_cluster_identifier == "orders-global"
        assert admin.promoted_global_cluster_identifier == "orders-global-new"

    @pytest.mark.asyncio
    async def test_promote_other_error_raises(self, rds, west):
        rds.create_global_cluster.side_effect = client_error("AccessDenied", "CreateGlobalCluster")

        with pytest.raises(ClientError):
            await build_admin(rds, managed_failover=False).promote(west)


# ══════════════════════════════════════════════════════════════════════════════
# TESTS RÉSOLUTION DES CLUSTERS
# ══════════════════════════════════════════════════════════════════════════════


class TestClusterResolution:
    @pytest.mark.asyncio
    async def test_declared_identifier_preferred(self, rds, make_region):
        region = make_region("us-west-2", cluster_identifier="orders-west-prod")

        await build_admin(rds).is_writer(region)

        rds.describe_db_clusters.assert_called_once_with(DBClusterIdentifier="orders-west-prod")

    @pytest.mark.asyncio
    async def test_no_identifier(self, rds, west):
        admin = AuroraGlobalClusterAdmin("orders-global", client_factory=lambda region_id: rds)

        with pytest.raises(ValueError):
            await admin.promote_atomic(west)

    @pytest.mark.asyncio
    async def test_cluster_not_found(self, rds, west):
        rds.describe_db_clusters.return_value = {"DBClusters": []}

        with pytest.raises(LookupError):
            await build_admin(rds).promote_atomic(west)

    def test_global_identifier_required(self):
        with pytest.raises(ValueError):
            AuroraGlobalClusterAdmin("")

    def test_naming_convention(self):
        assert cluster_identifier_for("orders", "eu-west-1") == "orders-eu-west-1"


class TestRdsClusterDirectory:
    @pytest.mark.asyncio
    async def test_endpoints_discovered(self, rds):
        declared = [
            DirectoryEntry("us-west-2", Endpoint(host="placeholder", database="orders"), RegionRole.PRIMARY),
        ]
        directory = RdsClusterDirectory("orders", declared, client_factory=lambda region_id: rds)

        entries = await directory.load()

        assert entries[0].endpoint.host == "orders-west.cluster-abc.rds.amazonaws.com"
        assert entries[0].endpoint.database == "orders"
        assert entries[0].role == RegionRole.PRIMARY
        assert entries[0].cluster_identifier == "orders-us-west-2"

    @pytest.mark.asyncio
    async def test_missing_cluster(self, rds):
        rds.describe_db_clusters.return_value = {"DBClusters": []}
        declared = [DirectoryEntry("us-west-2", Endpoint(host="x"), RegionRole.PRIMARY)]

        with pytest.raises(LookupError):
            await RdsClusterDirectory("orders", declared, client_factory=lambda region_id: rds).load()
