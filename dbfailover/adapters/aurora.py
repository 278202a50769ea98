"""
Aurora Global Database (boto3 rds)

AuroraGlobalClusterAdmin:
    - promotion atomique: failover_global_cluster(AllowDataLoss=True)
    - séquence: remove_from_global_cluster, attente de sortie du global
      cluster, puis create_global_cluster depuis le cluster détaché
RdsClusterDirectory:
    - endpoints découverts par describe_db_clusters ({cluster}-{region})

Les appels boto3 sont bloquants et passent par asyncio.to_thread. Un client
par région, créé à la demande.
"""

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import ClientError

from dbfailover.ha.interfaces import (
    DirectoryEntry,
    Endpoint,
    IClusterAdmin,
    IClusterDirectory,
    Region,
)

ClientFactory = Callable[[str], Any]


def default_rds_client(region_id: str) -> Any:
    return boto3.client("rds", region_name=region_id)


def cluster_identifier_for(cluster_id: str, region_id: str) -> str:
    """Convention de nommage des clusters régionaux."""
    return f"{cluster_id}-{region_id}"


class _RdsClients:
    def __init__(self, factory: Optional[ClientFactory] = None) -> None:
        self._factory = factory or default_rds_client
        self._clients: Dict[str, Any] = {}

    def get(self, region_id: str) -> Any:
        if region_id not in self._clients:
            self._clients[region_id] = self._factory(region_id)
        return self._clients[region_id]


class AuroraGlobalClusterAdmin(IClusterAdmin):
    """
    Example:
        admin = AuroraGlobalClusterAdmin("orders-global", managed_failover=True)
        await admin.promote_atomic(region)
    """

    def __init__(
        self,
        global_cluster_identifier: str,
        managed_failover: bool = True,
        promoted_global_cluster_identifier: Optional[str] = None,
        cluster_id: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        """
        Args:
            global_cluster_identifier: Global cluster courant
            managed_failover: Utiliser la promotion atomique
            promoted_global_cluster_identifier: Nom du global cluster recréé
                autour du nouveau primaire (défaut: <global>-new). Les
                promotions suivantes du même processus ajoutent -2, -3...
            cluster_id: Préfixe des clusters régionaux sans identifiant déclaré
            client_factory: region_id -> client rds (tests)
        """
        if not global_cluster_identifier:
            raise ValueError("global_cluster_identifier is required")
        self._global_id = global_cluster_identifier
        self._managed = managed_failover
        self._promoted_root = promoted_global_cluster_identifier or f"{global_cluster_identifier}-new"
        self._promotions = 0
        self._cluster_id = cluster_id
        self._clients = _RdsClients(client_factory)
        self._arns: Dict[str, str] = {}

    @property
    def supports_atomic_promotion(self) -> bool:
        return self._managed

    @property
    def global_cluster_identifier(self) -> str:
        return self._global_id

    @property
    def promoted_global_cluster_identifier(self) -> str:
        """Identifiant du global cluster créé par la prochaine promotion non atomique."""
        if self._promotions == 0:
            return self._promoted_root
        return f"{self._promoted_root}-{self._promotions + 1}"

    async def promote_atomic(self, region: Region) -> None:
        arn = await self._cluster_arn(region)
        await asyncio.to_thread(
            self._clients.get(region.region_id).failover_global_cluster,
            GlobalClusterIdentifier=self._global_id,
            TargetDbClusterIdentifier=arn,
            AllowDataLoss=True,
        )

    async def is_writer(self, region: Region) -> bool:
        arn = await self._cluster_arn(region)
        for member in await self._members(region.region_id, self._global_id):
            if member.get("DBClusterArn") == arn:
                return bool(member.get("IsWriter"))
        return False

    async def detach(self, region: Region) -> None:
        arn = await self._cluster_arn(region)
        try:
            await asyncio.to_thread(
                self._clients.get(region.region_id).remove_from_global_cluster,
                GlobalClusterIdentifier=self._global_id,
                DbClusterIdentifier=arn,
            )
        except ClientError as e:
            # Rejeu: déjà sorti du global cluster
            if _error_code(e) != "InvalidGlobalClusterStateFault" or not await self.is_detached(region):
                raise

    async def is_detached(self, region: Region) -> bool:
        arn = await self._cluster_arn(region)
        members = await self._members(region.region_id, self._global_id)
        return all(member.get("DBClusterArn") != arn for member in members)

    async def promote(self, region: Region) -> None:
        """
        Recrée un global cluster autour du nouveau primaire.

        En cas de succès, ce global cluster devient la référence des
        détachements et promotions suivants.
        """
        arn = await self._cluster_arn(region)
        promoted_id = self.promoted_global_cluster_identifier
        try:
            await asyncio.to_thread(
                self._clients.get(region.region_id).create_global_cluster,
                GlobalClusterIdentifier=promoted_id,
                SourceDBClusterIdentifier=arn,
            )
        except ClientError as e:
            # Rejeu: le global cluster existe déjà autour de ce primaire
            if _error_code(e) != "GlobalClusterAlreadyExistsFault":
                raise
            members = await self._members(region.region_id, promoted_id)
            if not any(m.get("DBClusterArn") == arn and m.get("IsWriter") for m in members):
                raise
        self._global_id = promoted_id
        self._promotions += 1

    async def _cluster_arn(self, region: Region) -> str:
        if region.region_id in self._arns:
            return self._arns[region.region_id]
        identifier = region.cluster_identifier
        if not identifier and self._cluster_id:
            identifier = cluster_identifier_for(self._cluster_id, region.region_id)
        if not identifier:
            raise ValueError(f"Region {region.region_id} has no db cluster identifier")
        response = await asyncio.to_thread(
            self._clients.get(region.region_id).describe_db_clusters,
            DBClusterIdentifier=identifier,
        )
        clusters = response.get("DBClusters") or []
        if not clusters:
            raise LookupError(f"DB cluster {identifier} not found in {region.region_id}")
        arn = clusters[0]["DBClusterArn"]
        self._arns[region.region_id] = arn
        return arn

    async def _members(self, region_id: str, global_id: str) -> List[Dict[str, Any]]:
        response = await asyncio.to_thread(
            self._clients.get(region_id).describe_global_clusters,
            GlobalClusterIdentifier=global_id,
        )
        clusters = response.get("GlobalClusters") or []
        if not clusters:
            return []
        return list(clusters[0].get("GlobalClusterMembers") or [])


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class RdsClusterDirectory(IClusterDirectory):
    """
    Directory dont les endpoints viennent de l'API RDS.

    Les régions et rôles déclarés restent ceux de la configuration; seul
    l'endpoint d'écriture de chaque cluster régional est découvert.
    """

    def __init__(
        self,
        cluster_id: str,
        declared: Iterable[DirectoryEntry],
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._cluster_id = cluster_id
        self._declared = list(declared)
        self._clients = _RdsClients(client_factory)

    async def load(self) -> List[DirectoryEntry]:
        """
        Raises:
            LookupError: Cluster régional introuvable
        """
        return list(await asyncio.gather(*(self._resolve(entry) for entry in self._declared)))

    async def _resolve(self, entry: DirectoryEntry) -> DirectoryEntry:
        identifier = entry.cluster_identifier or cluster_identifier_for(self._cluster_id, entry.region_id)
        response = await asyncio.to_thread(
            self._clients.get(entry.region_id).describe_db_clusters,
            DBClusterIdentifier=identifier,
        )
        clusters = response.get("DBClusters") or []
        if not clusters:
            raise LookupError(f"DB cluster {identifier} not found in {entry.region_id}")
        cluster = clusters[0]
        return DirectoryEntry(
            region_id=entry.region_id,
            endpoint=Endpoint(
                host=cluster["Endpoint"],
                port=int(cluster.get("Port") or entry.endpoint.port),
                database=entry.endpoint.database,
                credentials_ref=entry.endpoint.credentials_ref,
            ),
            role=entry.role,
            cluster_identifier=identifier,
        )
