from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import datetime
from typing import Protocol

from quonitor.core.config.settings import get_settings
from quonitor.core.errors import ConfigError
from quonitor.core.metrics import get_metrics
from quonitor.core.metrics.metrics import FetchTrigger
from quonitor.core.quota.cache import QuotaCache
from quonitor.core.quota.types import QuotaData
from quonitor.core.utils.rwlock import AsyncRWLock
from quonitor.modules.quotas.repo_bundle import QuotaRepoFactory
from quonitor.modules.settings.repository import REFRESH_INTERVAL_KEY

logger = logging.getLogger(__name__)


class QuotaFetcherPort(Protocol):
    async def fetch_all_quotas(self) -> list[QuotaData]: ...


class QuotaNotifierPort(Protocol):
    async def check_and_notify(
        self,
        quota: QuotaData,
        *,
        now: datetime | None = None,
        local_now: datetime | None = None,
    ) -> object: ...


def _validate_interval(seconds: float) -> float:
    if seconds <= 0:
        raise ConfigError(f"Refresh interval must be positive, got {seconds}")
    return seconds


class QuotaRefreshScheduler:
    """Runs a fetch cycle on start and then once per interval until stopped.

    The interval is read at the start of every sleep, so `set_interval` takes effect at the
    next cycle boundary without a restart.
    """

    def __init__(
        self,
        aggregator: QuotaFetcherPort,
        notifier: QuotaNotifierPort,
        cache: QuotaCache,
        interval_seconds: float,
    ) -> None:
        self._aggregator = aggregator
        self._notifier = notifier
        self._cache = cache
        self._state_lock = AsyncRWLock()
        self._interval = _validate_interval(interval_seconds)
        self._running = False
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        async with self._state_lock.write():
            if self._running:
                return
            self._running = True
            self._stop = asyncio.Event()
            self._task = asyncio.create_task(self._run_loop(), name="quota-refresh-scheduler")
        logger.info("Quota refresh scheduler started interval_seconds=%s", self._interval)

    async def stop(self) -> None:
        async with self._state_lock.write():
            task = self._task
            if not self._running and task is None:
                return
            self._running = False
            self._stop.set()
            self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Quota refresh scheduler stopped")

    async def set_interval(self, seconds: float) -> None:
        validated = _validate_interval(seconds)
        async with self._state_lock.write():
            self._interval = validated
        logger.info("Quota refresh interval updated interval_seconds=%s", validated)

    async def interval_seconds(self) -> float:
        async with self._state_lock.read():
            return self._interval

    async def is_running(self) -> bool:
        async with self._state_lock.read():
            return self._running

    async def run_fetch_cycle(self, *, trigger: FetchTrigger = "manual") -> list[QuotaData]:
        started = time.monotonic()
        quotas = await self._aggregator.fetch_all_quotas()
        metrics = get_metrics()
        for quota in quotas:
            # Persistence already happened inside the aggregator; alert next, then publish.
            try:
                await self._notifier.check_and_notify(quota)
            except Exception:
                logger.warning("Notification check failed account_id=%s", quota.account_id, exc_info=True)
            await self._cache.set(quota.account_id, quota)
            metrics.set_account_usage_percent(quota.account_id, quota.usage_percent())
        duration = time.monotonic() - started
        metrics.observe_fetch_cycle(trigger=trigger, duration_seconds=duration)
        logger.info(
            "Quota fetch cycle finished trigger=%s accounts=%s duration_ms=%s",
            trigger,
            len(quotas),
            int(duration * 1000),
        )
        return quotas

    async def _run_loop(self) -> None:
        await self._run_cycle_safely()
        while True:
            interval = await self.interval_seconds()
            if await self._sleep(interval):
                return
            if not await self.is_running():
                return
            await self._run_cycle_safely()

    async def _sleep(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run_cycle_safely(self) -> None:
        try:
            await self.run_fetch_cycle(trigger="scheduled")
        except Exception:
            logger.exception("Quota refresh cycle failed")


async def build_quota_refresh_scheduler(
    aggregator: QuotaFetcherPort,
    notifier: QuotaNotifierPort,
    cache: QuotaCache,
    repo_factory: QuotaRepoFactory,
) -> QuotaRefreshScheduler:
    interval: float = get_settings().refresh_interval_seconds
    try:
        async with repo_factory() as repos:
            stored = await repos.settings.get_int(REFRESH_INTERVAL_KEY)
    except Exception:
        logger.warning("Failed to read persisted refresh interval; using configured default", exc_info=True)
        stored = None
    if stored is not None and stored > 0:
        interval = stored
    return QuotaRefreshScheduler(aggregator, notifier, cache, interval)
