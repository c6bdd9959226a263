from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Final

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from quonitor.db.migrations.versions import seed_default_settings

_CREATE_MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    name TEXT PRIMARY KEY,
    applied_at TEXT NOT NULL
)
"""

_INSERT_MIGRATION = """
INSERT INTO schema_migrations (name, applied_at)
VALUES (:name, :applied_at)
ON CONFLICT(name) DO NOTHING
RETURNING name
"""


@dataclass(frozen=True)
class Migration:
    name: str
    run: Callable[[AsyncSession], Awaitable[None]]


MIGRATIONS: Final[tuple[Migration, ...]] = (
    Migration("001_seed_default_settings", seed_default_settings.run),
)


async def run_migrations(session: AsyncSession, migrations: tuple[Migration, ...] = MIGRATIONS) -> int:
    await _ensure_schema_migrations(session)
    applied_count = 0
    for migration in migrations:
        applied_now = await _apply_migration(session, migration)
        if applied_now:
            applied_count += 1
    return applied_count


async def _apply_migration(session: AsyncSession, migration: Migration) -> bool:
    async with _migration_transaction(session):
        result = await session.execute(
            text(_INSERT_MIGRATION),
            {
                "name": migration.name,
                "applied_at": _utcnow_iso(),
            },
        )
        inserted = result.scalar_one_or_none()
        if inserted is None:
            return False
        await migration.run(session)
    return True


async def _ensure_schema_migrations(session: AsyncSession) -> None:
    async with _migration_transaction(session):
        await session.execute(text(_CREATE_MIGRATIONS_TABLE))


@asynccontextmanager
async def _migration_transaction(session: AsyncSession):
    if session.in_transaction():
        async with session.begin_nested():
            yield
    else:
        async with session.begin():
            yield


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
