from __future__ import annotations

from quonitor.core.quota.types import QuotaData
from quonitor.core.utils.rwlock import AsyncRWLock


class QuotaCache:
    """Latest known quota per account. Last write wins, no eviction."""

    def __init__(self) -> None:
        self._lock = AsyncRWLock()
        self._entries: dict[str, QuotaData] = {}

    async def set(self, account_id: str, quota: QuotaData) -> None:
        async with self._lock.write():
            self._entries[account_id] = quota

    async def get(self, account_id: str) -> QuotaData | None:
        async with self._lock.read():
            return self._entries.get(account_id)

    async def get_all(self) -> list[QuotaData]:
        async with self._lock.read():
            return list(self._entries.values())

    async def remove(self, account_id: str) -> None:
        async with self._lock.write():
            self._entries.pop(account_id, None)

    async def clear(self) -> None:
        async with self._lock.write():
            self._entries.clear()
