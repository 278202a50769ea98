"""
DynamoDB Lease Lock

Bail partagé entre orchestrateurs: un item par cluster, écrit par put_item
conditionnel. Le bail est pris si l'item est absent, expiré ou déjà détenu
par le même owner. Un orchestrateur mort libère le bail à expiration.
"""

import asyncio
import math
import time
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import ClientError

from dbfailover.ha.interfaces import ILeaseLock


class DynamoDbLeaseLock(ILeaseLock):
    """
    Table attendue: clé de partition "lock_id" (S).

    Example:
        lock = DynamoDbLeaseLock("dbfailover-locks", lock_id="orders", ttl_seconds=900)
    """

    def __init__(
        self,
        table_name: str,
        lock_id: str,
        ttl_seconds: float = 900.0,
        client: Optional[Any] = None,
        region_name: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._table = table_name
        self._lock_id = lock_id
        # Bail d'au moins une seconde
        self._ttl = max(1, int(math.ceil(ttl_seconds)))
        self._client = client or boto3.client("dynamodb", region_name=region_name)
        self._clock = clock

    @property
    def lock_id(self) -> str:
        return self._lock_id

    async def acquire(self, owner: str) -> bool:
        now = int(self._clock())
        try:
            await asyncio.to_thread(
                self._client.put_item,
                TableName=self._table,
                Item={
                    "lock_id": {"S": self._lock_id},
                    "owner": {"S": owner},
                    "expires_at": {"N": str(now + self._ttl)},
                },
                ConditionExpression="attribute_not_exists(lock_id) OR expires_at < :now OR #owner = :owner",
                ExpressionAttributeNames={"#owner": "owner"},
                ExpressionAttributeValues={
                    ":now": {"N": str(now)},
                    ":owner": {"S": owner},
                },
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise
        return True

    async def release(self, owner: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_item,
                TableName=self._table,
                Key={"lock_id": {"S": self._lock_id}},
                ConditionExpression="#owner = :owner",
                ExpressionAttributeNames={"#owner": "owner"},
                ExpressionAttributeValues={":owner": {"S": owner}},
            )
        except ClientError as e:
            # Bail expiré puis repris par un autre orchestrateur
            if e.response.get("Error", {}).get("Code") != "ConditionalCheckFailedException":
                raise
