from __future__ import annotations

import logging

from quonitor.core.metrics import get_metrics
from quonitor.core.quota.types import QuotaData
from quonitor.core.utils.time import days_ago
from quonitor.db.models import ModelUsage, QuotaSnapshot
from quonitor.modules.quotas.repository import QuotaHistoryRepository
from quonitor.modules.settings.repository import DATA_RETENTION_DAYS_KEY, SettingsRepository
from quonitor.runtime import QuonitorRuntime

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 90


class QuotasService:
    def __init__(
        self,
        history_repo: QuotaHistoryRepository,
        settings_repo: SettingsRepository,
        runtime: QuonitorRuntime,
    ) -> None:
        self._history_repo = history_repo
        self._settings_repo = settings_repo
        self._runtime = runtime

    async def cached_quotas(self) -> list[QuotaData]:
        return await self._runtime.cache.get_all()

    async def cached_quota(self, account_id: str) -> QuotaData | None:
        return await self._runtime.cache.get(account_id)

    async def refresh_all(self) -> list[QuotaData]:
        return await self._runtime.scheduler.run_fetch_cycle(trigger="manual")

    async def refresh_account(self, account_id: str) -> QuotaData:
        quota = await self._runtime.aggregator.fetch_account_quota(account_id)
        await self._runtime.cache.set(quota.account_id, quota)
        get_metrics().set_account_usage_percent(quota.account_id, quota.usage_percent())
        return quota

    async def snapshots(self, account_id: str, days: int) -> list[QuotaSnapshot]:
        return await self._history_repo.snapshots_since(account_id, days_ago(days))

    async def model_usage(self, account_id: str, days: int) -> list[ModelUsage]:
        return await self._history_repo.model_usage_since(account_id, days_ago(days))

    async def cleanup(self, days: int | None = None) -> tuple[int, int, int]:
        retention_days = days if days is not None else await self._retention_days()
        snapshots, model_rows = await self._history_repo.cleanup_older_than(retention_days)
        get_metrics().observe_cleanup(snapshots=snapshots, model_rows=model_rows)
        logger.info(
            "Retention cleanup finished days=%s snapshots=%s model_rows=%s",
            retention_days,
            snapshots,
            model_rows,
        )
        return retention_days, snapshots, model_rows

    async def _retention_days(self) -> int:
        stored = await self._settings_repo.get_int(DATA_RETENTION_DAYS_KEY)
        if stored is None or stored <= 0:
            return DEFAULT_RETENTION_DAYS
        return stored
