from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    # quonitor stores timestamps as "UTC-naive" datetimes (tzinfo stripped) for simplicity with
    # SQLite + SQLAlchemy. Local time only matters for quiet hours and the presentation layer.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now() -> datetime:
    return datetime.now().astimezone()


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_epoch_seconds(value: int | float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def to_epoch_seconds_assuming_utc(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def days_ago(days: int | float, *, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)
