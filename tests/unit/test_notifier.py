from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import pytest

from quonitor.core.quota.types import QuotaData
from quonitor.db.models import Account, NotificationState
from quonitor.modules.notifications.notifier import QuotaNotifier, in_quiet_hours, parse_hour
from quonitor.modules.notifications.sinks import Notification
from quonitor.modules.quotas.repo_bundle import QuotaRepositories

pytestmark = pytest.mark.unit

NOW = datetime(2026, 3, 10, 12, 0, 0)
NOON = datetime(2026, 3, 10, 12, 0, 0)


class StubSettingsRepository:
    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values = dict(values or {})

    async def get(self, key: str) -> str | None:
        return self.values.get(key)


class StubNotificationStateRepository:
    def __init__(self) -> None:
        self.states: dict[str, NotificationState] = {}
        self.upserts = 0

    async def get_or_new(self, account_id: str) -> NotificationState:
        return self.states.get(account_id) or NotificationState(account_id=account_id)

    async def upsert(self, state: NotificationState, *, commit: bool = True) -> NotificationState:
        self.states[state.account_id] = state
        self.upserts += 1
        return state


class StubAccountsRepository:
    async def get_account(self, account_id: str) -> Account | None:
        return Account(id=account_id, provider="openai", name="Work", credentials_encrypted=b"")


class RecordingSink:
    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[Notification] = []
        self.fail = fail

    async def send(self, notification: Notification) -> None:
        if self.fail:
            raise RuntimeError("sink offline")
        self.sent.append(notification)


def _notifier(settings: dict[str, str] | None = None, *, sink: RecordingSink | None = None):
    settings_repo = StubSettingsRepository(settings)
    states = StubNotificationStateRepository()
    recording = sink or RecordingSink()

    @asynccontextmanager
    async def _factory():
        yield QuotaRepositories(
            accounts=StubAccountsRepository(),  # type: ignore[arg-type]
            history=None,  # type: ignore[arg-type]
            notifications=states,  # type: ignore[arg-type]
            settings=settings_repo,  # type: ignore[arg-type]
        )

    return QuotaNotifier(_factory, recording), states, recording, settings_repo


def _quota(used_percent: float) -> QuotaData:
    limit = 1000
    return QuotaData(account_id="acc_1", quota_limit=limit, quota_remaining=int(limit - limit * used_percent / 100))


def test_parse_hour_accepts_hour_and_clock_formats():
    assert parse_hour("22") == 22
    assert parse_hour("06:30") == 6
    assert parse_hour("") is None
    assert parse_hour(None) is None
    assert parse_hour("24") is None
    assert parse_hour("late") is None


def test_quiet_hours_wrap_past_midnight():
    assert in_quiet_hours(22, "22", "6")
    assert in_quiet_hours(23, "22", "6")
    assert in_quiet_hours(0, "22", "6")
    assert in_quiet_hours(5, "22:00", "06:00")
    assert not in_quiet_hours(6, "22", "6")
    assert not in_quiet_hours(12, "22", "6")


def test_quiet_hours_same_day_range_all_day_and_disabled_cases():
    assert in_quiet_hours(9, "9", "17")
    assert not in_quiet_hours(17, "9", "17")
    assert in_quiet_hours(3, "5", "5")
    assert in_quiet_hours(5, "5:00", "05:30")
    assert not in_quiet_hours(3, "", "")
    assert not in_quiet_hours(3, "bogus", "6")


@pytest.mark.asyncio
async def test_critical_tier_sent_once_per_day():
    notifier, states, sink, _ = _notifier()

    first = await notifier.check_and_notify(_quota(96), now=NOW, local_now=NOON)
    second = await notifier.check_and_notify(_quota(97), now=NOW + timedelta(hours=1), local_now=NOON)
    third = await notifier.check_and_notify(_quota(97), now=NOW + timedelta(hours=25), local_now=NOON)

    assert first is not None
    assert first.tier == 95
    assert first.urgency == "critical"
    assert first.title == "URGENT: Quota Critical"
    assert first.body == "Your Work account is at 96.0% - approaching limit!"
    assert second is not None
    assert second.tier == 90
    assert third is not None
    assert third.tier == 95
    assert [notification.tier for notification in sink.sent] == [95, 90, 95]
    assert states.states["acc_1"].last_95_percent_notified == NOW + timedelta(hours=25)


@pytest.mark.asyncio
async def test_tier_matches_usage_band():
    notifier, states, sink, _ = _notifier()

    caution = await notifier.check_and_notify(_quota(92), now=NOW, local_now=NOON)

    assert caution is not None
    assert caution.tier == 90
    assert caution.urgency == "normal"
    assert caution.body == "Your Work account is at 92.0% usage"
    state = states.states["acc_1"]
    assert state.last_90_percent_notified == NOW
    assert state.last_75_percent_notified is None
    assert state.last_95_percent_notified is None


@pytest.mark.asyncio
async def test_recent_higher_tier_falls_through_to_next_due_tier():
    notifier, states, sink, _ = _notifier()
    states.states["acc_1"] = NotificationState(
        account_id="acc_1",
        last_95_percent_notified=NOW - timedelta(hours=2),
    )

    result = await notifier.check_and_notify(_quota(96), now=NOW, local_now=NOON)

    assert result is not None
    assert result.tier == 90
    assert [notification.tier for notification in sink.sent] == [90]
    state = states.states["acc_1"]
    assert state.last_90_percent_notified == NOW
    assert state.last_95_percent_notified == NOW - timedelta(hours=2)

    again = await notifier.check_and_notify(_quota(96), now=NOW + timedelta(minutes=5), local_now=NOON)
    assert again is not None
    assert again.tier == 75

    silent = await notifier.check_and_notify(_quota(96), now=NOW + timedelta(minutes=10), local_now=NOON)
    assert silent is None
    assert [notification.tier for notification in sink.sent] == [90, 75]


@pytest.mark.asyncio
async def test_disabled_tier_falls_through_to_next_enabled():
    notifier, _, sink, _ = _notifier({"threshold_95_enabled": "false"})

    result = await notifier.check_and_notify(_quota(99), now=NOW, local_now=NOON)

    assert result is not None
    assert result.tier == 90


@pytest.mark.asyncio
async def test_below_lowest_threshold_records_state_without_sending():
    notifier, states, sink, _ = _notifier()

    result = await notifier.check_and_notify(_quota(50), now=NOW, local_now=NOON)

    assert result is None
    assert sink.sent == []
    assert states.upserts == 1


@pytest.mark.asyncio
async def test_notifications_disabled_or_quiet_hours_skip_everything():
    disabled, disabled_states, disabled_sink, _ = _notifier({"notifications_enabled": "false"})
    assert await disabled.check_and_notify(_quota(99), now=NOW, local_now=NOON) is None
    assert disabled_sink.sent == []
    assert disabled_states.upserts == 0

    quiet, quiet_states, quiet_sink, _ = _notifier({"quiet_hours_start": "22", "quiet_hours_end": "6"})
    late_night = datetime(2026, 3, 10, 23, 30)
    assert await quiet.check_and_notify(_quota(99), now=NOW, local_now=late_night) is None
    assert quiet_sink.sent == []
    assert quiet_states.upserts == 0


@pytest.mark.asyncio
async def test_unknown_usage_percent_is_ignored():
    notifier, states, sink, _ = _notifier()
    result = await notifier.check_and_notify(QuotaData(account_id="acc_1"), now=NOW, local_now=NOON)
    assert result is None
    assert states.upserts == 0


@pytest.mark.asyncio
async def test_failed_delivery_still_starts_debounce():
    notifier, states, sink, _ = _notifier(sink=RecordingSink(fail=True))

    result = await notifier.check_and_notify(_quota(80), now=NOW, local_now=NOON)

    assert result is not None
    assert result.tier == 75
    assert result.urgency == "low"
    assert states.states["acc_1"].last_75_percent_notified == NOW


@pytest.mark.asyncio
async def test_failing_sink_does_not_resend_critical_tier_within_window():
    notifier, states, _, _ = _notifier(sink=RecordingSink(fail=True))

    fired = []
    for minutes in (0, 5, 10):
        result = await notifier.check_and_notify(_quota(96), now=NOW + timedelta(minutes=minutes), local_now=NOON)
        fired.append(result.tier if result is not None else None)

    assert fired == [95, 90, 75]
    assert states.states["acc_1"].last_95_percent_notified == NOW
