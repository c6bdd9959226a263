from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quonitor.db.models import Account


class AccountsRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def get_account(self, account_id: str) -> Account | None:
        return await self._session.get(Account, account_id)

    async def list_accounts(self) -> list[Account]:
        result = await self._session.execute(select(Account).order_by(Account.created_at, Account.id))
        return list(result.scalars().all())

    async def insert(self, account: Account, *, commit: bool = True) -> Account:
        self._session.add(account)
        if commit:
            await self._session.commit()
            await self._session.refresh(account)
        else:
            await self._session.flush()
        return account

    async def delete(self, account_id: str) -> bool:
        result = await self._session.execute(delete(Account).where(Account.id == account_id).returning(Account.id))
        await self._session.commit()
        return result.scalar_one_or_none() is not None

    async def update_sync_time(self, account_id: str, synced_at: datetime, *, commit: bool = True) -> bool:
        result = await self._session.execute(
            update(Account).where(Account.id == account_id).values(last_synced=synced_at).returning(Account.id)
        )
        if commit:
            await self._session.commit()
        return result.scalar_one_or_none() is not None
