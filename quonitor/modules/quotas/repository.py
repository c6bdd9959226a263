from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from quonitor.core.quota.types import ModelData, QuotaData
from quonitor.core.utils.time import days_ago, utcnow
from quonitor.db.models import ModelUsage, QuotaSnapshot


class QuotaHistoryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def add_snapshot(
        self,
        quota: QuotaData,
        *,
        recorded_at: datetime | None = None,
        commit: bool = True,
    ) -> QuotaSnapshot:
        entry = QuotaSnapshot(
            account_id=quota.account_id,
            recorded_at=recorded_at or quota.timestamp or utcnow(),
            tokens_input=quota.tokens_input,
            tokens_output=quota.tokens_output,
            cost_usd=quota.cost_usd,
            quota_limit=quota.quota_limit,
            quota_remaining=quota.quota_remaining,
            metadata_text=quota.metadata,
        )
        self._session.add(entry)
        if commit:
            await self._session.commit()
            await self._session.refresh(entry)
        return entry

    async def add_model_usage(
        self,
        account_id: str,
        model: ModelData,
        *,
        recorded_at: datetime | None = None,
        commit: bool = True,
    ) -> ModelUsage:
        entry = ModelUsage(
            account_id=account_id,
            recorded_at=recorded_at or utcnow(),
            model_name=model.model_name,
            tokens_input=model.tokens_input,
            tokens_output=model.tokens_output,
            cost_usd=model.cost_usd,
            request_count=model.request_count,
        )
        self._session.add(entry)
        if commit:
            await self._session.commit()
            await self._session.refresh(entry)
        return entry

    async def snapshots_since(self, account_id: str, since: datetime) -> list[QuotaSnapshot]:
        result = await self._session.execute(
            select(QuotaSnapshot)
            .where(QuotaSnapshot.account_id == account_id, QuotaSnapshot.recorded_at >= since)
            .order_by(QuotaSnapshot.recorded_at, QuotaSnapshot.id)
        )
        return list(result.scalars().all())

    async def model_usage_since(self, account_id: str, since: datetime) -> list[ModelUsage]:
        result = await self._session.execute(
            select(ModelUsage)
            .where(ModelUsage.account_id == account_id, ModelUsage.recorded_at >= since)
            .order_by(ModelUsage.recorded_at, ModelUsage.id)
        )
        return list(result.scalars().all())

    async def latest_snapshot(self, account_id: str) -> QuotaSnapshot | None:
        result = await self._session.execute(
            select(QuotaSnapshot)
            .where(QuotaSnapshot.account_id == account_id)
            .order_by(QuotaSnapshot.recorded_at.desc(), QuotaSnapshot.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def cleanup_older_than(self, days: int, *, now: datetime | None = None) -> tuple[int, int]:
        cutoff = days_ago(days, now=now)
        snapshots = await self._session.execute(
            delete(QuotaSnapshot).where(QuotaSnapshot.recorded_at < cutoff).returning(QuotaSnapshot.id)
        )
        models = await self._session.execute(
            delete(ModelUsage).where(ModelUsage.recorded_at < cutoff).returning(ModelUsage.id)
        )
        snapshot_count = len(snapshots.scalars().all())
        model_count = len(models.scalars().all())
        await self._session.commit()
        return snapshot_count, model_count
