from __future__ import annotations

from quonitor.core.errors import ConfigError
from quonitor.core.quota.refresh_scheduler import QuotaRefreshScheduler
from quonitor.modules.settings.repository import REFRESH_INTERVAL_KEY, SettingsRepository


def parse_refresh_interval(value: str) -> int:
    try:
        seconds = int(value.strip())
    except ValueError as exc:
        raise ConfigError(f"{REFRESH_INTERVAL_KEY} must be a positive integer") from exc
    if seconds <= 0:
        raise ConfigError(f"{REFRESH_INTERVAL_KEY} must be a positive integer")
    return seconds


class SettingsService:
    def __init__(self, repository: SettingsRepository, scheduler: QuotaRefreshScheduler) -> None:
        self._repository = repository
        self._scheduler = scheduler

    async def list_settings(self) -> dict[str, str]:
        return await self._repository.list_all()

    async def get_setting(self, key: str) -> str | None:
        return await self._repository.get(key)

    async def set_setting(self, key: str, value: str) -> None:
        if key == REFRESH_INTERVAL_KEY:
            seconds = parse_refresh_interval(value)
            await self._repository.set(key, str(seconds))
            await self._scheduler.set_interval(seconds)
            return
        await self._repository.set(key, value)
