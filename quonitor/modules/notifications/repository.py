from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from quonitor.db.models import NotificationState


class NotificationStateRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, account_id: str) -> NotificationState | None:
        return await self._session.get(NotificationState, account_id)

    async def get_or_new(self, account_id: str) -> NotificationState:
        existing = await self.get(account_id)
        if existing is not None:
            return existing
        return NotificationState(account_id=account_id)

    async def upsert(self, state: NotificationState, *, commit: bool = True) -> NotificationState:
        merged = await self._session.merge(state)
        if commit:
            await self._session.commit()
        return merged
