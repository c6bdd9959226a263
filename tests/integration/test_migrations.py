from __future__ import annotations

import pytest

from quonitor.db.migrations import MIGRATIONS, run_migrations
from quonitor.db.session import SessionLocal
from quonitor.modules.settings.repository import SettingsRepository

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_seed_defaults_applied_once_and_preserve_user_values(db_setup):
    async with SessionLocal() as session:
        await SettingsRepository(session).set("data_retention_days", "30")

    async with SessionLocal() as session:
        applied = await run_migrations(session)
    assert applied == len(MIGRATIONS)

    async with SessionLocal() as session:
        values = await SettingsRepository(session).list_all()
    assert values["data_retention_days"] == "30"
    assert values["refresh_interval_seconds"] == "300"
    assert values["notifications_enabled"] == "true"
    assert values["threshold_95_enabled"] == "true"
    assert values["quiet_hours_start"] == ""

    async with SessionLocal() as session:
        assert await run_migrations(session) == 0
