"""
Route53 Record Updater

Le nom canonique du primaire est un CNAME vers l'endpoint d'écriture de la
région promue (UPSERT, TTL court pour limiter la durée de cache).
"""

import asyncio
from typing import Any, Optional

import boto3

from dbfailover.ha.interfaces import Endpoint, INameRecordUpdater


class Route53RecordUpdater(INameRecordUpdater):
    def __init__(
        self,
        hosted_zone_id: str,
        record_name: str,
        client: Optional[Any] = None,
        comment: str = "Database failover",
    ) -> None:
        if not hosted_zone_id:
            raise ValueError("hosted_zone_id is required")
        if not record_name:
            raise ValueError("record_name is required")
        self._zone_id = hosted_zone_id
        self._record_name = record_name
        self._client = client or boto3.client("route53")
        self._comment = comment

    @property
    def record_name(self) -> str:
        return self._record_name

    async def upsert_primary(self, endpoint: Endpoint, ttl_seconds: int) -> None:
        change_batch = {
            "Comment": self._comment,
            "Changes": [
                {
                    "Action": "UPSERT",
                    "ResourceRecordSet": {
                        "Name": self._record_name,
                        "Type": "CNAME",
                        "TTL": ttl_seconds,
                        "ResourceRecords": [{"Value": endpoint.host}],
                    },
                }
            ],
        }
        await asyncio.to_thread(
            self._client.change_resource_record_sets,
            HostedZoneId=self._zone_id,
            ChangeBatch=change_batch,
        )
