from __future__ import annotations

import os
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="quonitor-tests-"))
TEST_DB_PATH = TEST_DB_DIR / "quonitor.db"

os.environ["QUONITOR_DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["QUONITOR_KEYRING_ENABLED"] = "false"
os.environ["QUONITOR_REFRESH_ENABLED"] = "false"
os.environ["QUONITOR_OPENAI_BASE_URL"] = "https://openai.example.invalid"
os.environ["QUONITOR_ANTHROPIC_BASE_URL"] = "https://anthropic.example.invalid"
os.environ["QUONITOR_GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["QUONITOR_GOOGLE_CLIENT_SECRET"] = "test-client-secret"

from quonitor.core.crypto import get_cipher  # noqa: E402
from quonitor.db.models import Base  # noqa: E402
from quonitor.db.session import engine  # noqa: E402
from quonitor.main import create_app  # noqa: E402
from quonitor.modules.oauth.service import _OAUTH_STORE  # noqa: E402


async def _reset_database() -> None:
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE IF EXISTS schema_migrations"))
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest_asyncio.fixture
async def app_instance():
    app = create_app()
    await _reset_database()
    await _OAUTH_STORE.reset()
    return app


@pytest_asyncio.fixture(scope="session", autouse=True)
async def dispose_engine():
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db_setup():
    await _reset_database()
    return True


@pytest_asyncio.fixture
async def async_client(app_instance):
    async with app_instance.router.lifespan_context(app_instance):
        transport = ASGITransport(app=app_instance)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest.fixture(autouse=True)
def temp_key_file(monkeypatch):
    key_path = TEST_DB_DIR / f"master-{uuid4().hex}.key"
    monkeypatch.setenv("QUONITOR_ENCRYPTION_KEY_FILE", str(key_path))
    from quonitor.core.config.settings import get_settings

    get_settings.cache_clear()
    get_cipher.cache_clear()
    return key_path
