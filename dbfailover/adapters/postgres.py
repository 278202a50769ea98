"""
PostgreSQL Client

Canal requête/santé vers chaque noeud (psycopg2). Le driver est bloquant:
chaque appel tourne dans un thread pour ne pas figer la boucle asyncio.
Une connexion courte par opération, fermée dans tous les cas.
"""

import asyncio
from typing import Any, Callable, Optional

import psycopg2
from psycopg2 import sql

from dbfailover.core.credentials import EnvironmentCredentials
from dbfailover.ha.interfaces import Endpoint, IDatabaseClient

# NULL sur un primaire ou tant qu'aucune transaction n'a été rejouée
LAG_QUERY = "SELECT EXTRACT(EPOCH FROM (NOW() - pg_last_xact_replay_timestamp()))"

INSERT_MARKER = "INSERT INTO {table} (validated_at, region, marker) VALUES (NOW(), %s, %s)"


class PostgresClient(IDatabaseClient):
    """
    Example:
        client = PostgresClient(EnvironmentCredentials(), connect_timeout=5)
        await client.ping(region.endpoint)
    """

    APPLICATION_NAME = "dbfailover"

    def __init__(
        self,
        credentials: EnvironmentCredentials,
        connect_timeout: int = 5,
        validation_table: str = "failover_validation",
        connect: Optional[Callable[..., Any]] = None,
    ) -> None:
        """
        Args:
            credentials: Source des identifiants (<REF>_USER / <REF>_PASSWORD)
            connect_timeout: Timeout de connexion libpq (secondes)
            validation_table: Table des marqueurs de validation
            connect: Fabrique de connexions (psycopg2.connect par défaut)
        """
        self._credentials = credentials
        self._connect_timeout = max(1, int(connect_timeout))
        self._table = validation_table
        self._connect = connect or psycopg2.connect

    async def ping(self, endpoint: Endpoint) -> None:
        await asyncio.to_thread(self._ping_sync, endpoint)

    async def replication_lag(self, endpoint: Endpoint) -> Optional[float]:
        return await asyncio.to_thread(self._lag_sync, endpoint)

    async def write_marker(self, endpoint: Endpoint, region_id: str, marker: str) -> None:
        await asyncio.to_thread(self._write_marker_sync, endpoint, region_id, marker)

    def _open(self, endpoint: Endpoint) -> Any:
        creds = self._credentials.database(endpoint.credentials_ref)
        return self._connect(
            host=endpoint.host,
            port=endpoint.port,
            dbname=endpoint.database,
            user=creds.user,
            password=creds.password,
            connect_timeout=self._connect_timeout,
            application_name=self.APPLICATION_NAME,
        )

    def _ping_sync(self, endpoint: Endpoint) -> None:
        conn = self._open(endpoint)
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
        finally:
            conn.close()

    def _lag_sync(self, endpoint: Endpoint) -> Optional[float]:
        conn = self._open(endpoint)
        try:
            with conn.cursor() as cur:
                cur.execute(LAG_QUERY)
                row = cur.fetchone()
        finally:
            conn.close()

        if not row or row[0] is None:
            return None
        return float(row[0])

    def _write_marker_sync(self, endpoint: Endpoint, region_id: str, marker: str) -> None:
        conn = self._open(endpoint)
        try:
            query = sql.SQL(INSERT_MARKER).format(table=sql.Identifier(self._table))
            with conn.cursor() as cur:
                cur.execute(query, (region_id, marker))
            conn.commit()
        finally:
            conn.close()
