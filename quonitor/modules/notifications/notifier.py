from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from quonitor.core.metrics import get_metrics
from quonitor.core.quota.types import QuotaData
from quonitor.core.utils.time import local_now as _local_now
from quonitor.core.utils.time import utcnow
from quonitor.db.models import NotificationState
from quonitor.modules.notifications.sinks import (
    LoggingNotificationSink,
    Notification,
    NotificationSink,
    Urgency,
)
from quonitor.modules.quotas.repo_bundle import QuotaRepoFactory
from quonitor.modules.settings.repository import (
    NOTIFICATIONS_ENABLED_KEY,
    QUIET_HOURS_END_KEY,
    QUIET_HOURS_START_KEY,
    SettingsRepository,
)

logger = logging.getLogger(__name__)

DEBOUNCE_WINDOW = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class NotificationTier:
    percent: int
    setting_key: str
    state_field: str
    title: str
    urgency: Urgency

    def message(self, account_label: str, usage_percent: float) -> str:
        if self.urgency == "critical":
            return f"Your {account_label} account is at {usage_percent:.1f}% - approaching limit!"
        return f"Your {account_label} account is at {usage_percent:.1f}% usage"


# Highest first. The first enabled, due tier whose threshold is met fires.
TIERS: tuple[NotificationTier, ...] = (
    NotificationTier(95, "threshold_95_enabled", "last_95_percent_notified", "URGENT: Quota Critical", "critical"),
    NotificationTier(90, "threshold_90_enabled", "last_90_percent_notified", "Quota Caution", "normal"),
    NotificationTier(75, "threshold_75_enabled", "last_75_percent_notified", "Quota Warning", "low"),
)


def parse_hour(value: str | None) -> int | None:
    if value is None:
        return None
    raw = value.strip()
    if not raw:
        return None
    hour_text, _, minute_text = raw.partition(":")
    if not hour_text.isdigit() or (minute_text and not minute_text.isdigit()):
        return None
    hour = int(hour_text)
    if not 0 <= hour <= 23:
        return None
    return hour


def in_quiet_hours(hour: int, start: str | None, end: str | None) -> bool:
    start_hour = parse_hour(start)
    end_hour = parse_hour(end)
    if start_hour is None or end_hour is None:
        return False
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def _is_enabled(value: str | None) -> bool:
    # Absent keys count as enabled; anything other than "true" disables.
    return value is None or value == "true"


def _due(last_notified: datetime | None, now: datetime) -> bool:
    return last_notified is None or last_notified < now - DEBOUNCE_WINDOW


class QuotaNotifier:
    def __init__(self, repo_factory: QuotaRepoFactory, sink: NotificationSink | None = None) -> None:
        self._repo_factory = repo_factory
        self._sink = sink or LoggingNotificationSink()

    async def check_and_notify(
        self,
        quota: QuotaData,
        *,
        now: datetime | None = None,
        local_now: datetime | None = None,
    ) -> Notification | None:
        async with self._repo_factory() as repos:
            if not await self._should_check(repos.settings, local_now or _local_now()):
                return None

            usage_percent = quota.usage_percent()
            if usage_percent is None:
                return None

            current = now or utcnow()
            state = await repos.notifications.get_or_new(quota.account_id)
            tier = await self._select_tier(repos.settings, state, usage_percent, current)

            notification: Notification | None = None
            if tier is not None:
                account = await repos.accounts.get_account(quota.account_id)
                account_name = account.name if account is not None else quota.account_id
                notification = Notification(
                    account_id=quota.account_id,
                    account_name=account_name,
                    tier=tier.percent,
                    title=tier.title,
                    body=tier.message(account_name, usage_percent),
                    urgency=tier.urgency,
                    usage_percent=usage_percent,
                )
                await self._deliver(notification)
                setattr(state, tier.state_field, current)

            await repos.notifications.upsert(state)
            return notification

    async def _should_check(self, settings: SettingsRepository, local_time: datetime) -> bool:
        if not _is_enabled(await settings.get(NOTIFICATIONS_ENABLED_KEY)):
            return False
        start = await settings.get(QUIET_HOURS_START_KEY)
        end = await settings.get(QUIET_HOURS_END_KEY)
        return not in_quiet_hours(local_time.hour, start, end)

    async def _select_tier(
        self,
        settings: SettingsRepository,
        state: NotificationState,
        usage_percent: float,
        now: datetime,
    ) -> NotificationTier | None:
        for tier in TIERS:
            if usage_percent < tier.percent:
                continue
            if not _is_enabled(await settings.get(tier.setting_key)):
                continue
            if _due(getattr(state, tier.state_field), now):
                return tier
        return None

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self._sink.send(notification)
        except Exception:
            logger.warning(
                "Failed to deliver notification account_id=%s tier=%s",
                notification.account_id,
                notification.tier,
                exc_info=True,
            )
            return
        get_metrics().observe_notification(tier=notification.tier)
        logger.info("Sent %s%% notification account_id=%s", notification.tier, notification.account_id)
