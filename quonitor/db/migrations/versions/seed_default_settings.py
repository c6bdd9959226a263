from __future__ import annotations

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

# Frozen copy of the defaults at the time this migration was written; later changes to the
# application defaults must ship as a new migration.
_DEFAULTS: tuple[tuple[str, str], ...] = (
    ("refresh_interval_seconds", "300"),
    ("notifications_enabled", "true"),
    ("threshold_75_enabled", "true"),
    ("threshold_90_enabled", "true"),
    ("threshold_95_enabled", "true"),
    ("quiet_hours_start", ""),
    ("quiet_hours_end", ""),
    ("data_retention_days", "90"),
)


def _settings_table_exists(session: Session) -> bool:
    inspector = inspect(session.connection())
    return inspector.has_table("settings")


async def run(session: AsyncSession) -> None:
    exists = await session.run_sync(_settings_table_exists)
    if not exists:
        return

    # Raw SQL so the migration keeps working if the ORM model gains columns later.
    for key, value in _DEFAULTS:
        await session.execute(
            text("INSERT INTO settings (key, value) VALUES (:key, :value) ON CONFLICT(key) DO NOTHING"),
            {"key": key, "value": value},
        )
