from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from quonitor.core.crypto import CredentialCipher, get_cipher
from quonitor.core.quota.cache import QuotaCache
from quonitor.core.quota.refresh_scheduler import QuotaRefreshScheduler, build_quota_refresh_scheduler
from quonitor.modules.notifications.notifier import QuotaNotifier
from quonitor.modules.notifications.sinks import NotificationSink, build_notification_sink
from quonitor.modules.quotas.aggregator import QuotaAggregator
from quonitor.modules.quotas.repo_bundle import QuotaRepoFactory

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QuonitorRuntime:
    cache: QuotaCache
    cipher: CredentialCipher
    aggregator: QuotaAggregator
    notifier: QuotaNotifier
    scheduler: QuotaRefreshScheduler
    _background_tasks: set[asyncio.Task[Any]] = field(default_factory=set)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._background_tasks.clear()


async def build_runtime(
    repo_factory: QuotaRepoFactory,
    *,
    cipher: CredentialCipher | None = None,
    sink: NotificationSink | None = None,
) -> QuonitorRuntime:
    cache = QuotaCache()
    resolved_cipher = cipher or get_cipher()
    aggregator = QuotaAggregator(repo_factory, resolved_cipher)
    notifier = QuotaNotifier(repo_factory, sink or build_notification_sink())
    scheduler = await build_quota_refresh_scheduler(aggregator, notifier, cache, repo_factory)
    return QuonitorRuntime(
        cache=cache,
        cipher=resolved_cipher,
        aggregator=aggregator,
        notifier=notifier,
        scheduler=scheduler,
    )
