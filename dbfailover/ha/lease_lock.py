"""
Lease Lock

Exclusion mutuelle des tentatives de failover. LocalLeaseLock suffit pour
un seul processus; plusieurs orchestrateurs partagent un bail distribué
(DynamoDbLeaseLock dans les adapters).
"""

import asyncio
from typing import Optional

from dbfailover.ha.interfaces import ILeaseLock


class LocalLeaseLock(ILeaseLock):
    """Verrou réentrant par owner, limité au processus courant."""

    def __init__(self) -> None:
        self._owner: Optional[str] = None
        self._guard = asyncio.Lock()

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    async def acquire(self, owner: str) -> bool:
        async with self._guard:
            if self._owner is None or self._owner == owner:
                self._owner = owner
                return True
            return False

    async def release(self, owner: str) -> None:
        async with self._guard:
            if self._owner == owner:
                self._owner = None
