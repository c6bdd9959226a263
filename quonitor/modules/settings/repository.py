from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quonitor.db.models import Setting

REFRESH_INTERVAL_KEY = "refresh_interval_seconds"
NOTIFICATIONS_ENABLED_KEY = "notifications_enabled"
QUIET_HOURS_START_KEY = "quiet_hours_start"
QUIET_HOURS_END_KEY = "quiet_hours_end"
DATA_RETENTION_DAYS_KEY = "data_retention_days"


class SettingsRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, key: str) -> str | None:
        row = await self._session.get(Setting, key)
        return row.value if row is not None else None

    async def get_int(self, key: str) -> int | None:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return int(raw.strip())
        except ValueError:
            return None

    async def set(self, key: str, value: str, *, commit: bool = True) -> None:
        await self._session.merge(Setting(key=key, value=value))
        if commit:
            await self._session.commit()

    async def list_all(self) -> dict[str, str]:
        result = await self._session.execute(select(Setting).order_by(Setting.key))
        return {row.key: row.value for row in result.scalars().all()}
