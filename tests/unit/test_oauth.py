from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from quonitor.core.clients.oauth import GoogleOAuthConfig, build_authorization_url
from quonitor.modules.oauth.service import OAuthStateStore

pytestmark = pytest.mark.unit


def _config() -> GoogleOAuthConfig:
    return GoogleOAuthConfig(
        client_id="client-123",
        client_secret="secret",
        redirect_uri="http://localhost:8765/oauth/google/callback",
        auth_url="https://accounts.example/o/oauth2/auth",
        token_url="https://oauth2.example/token",
    )


def test_authorization_url_requests_offline_access():
    url = build_authorization_url(_config(), state="state-abc")

    split = urlsplit(url)
    query = parse_qs(split.query)
    assert f"{split.scheme}://{split.netloc}{split.path}" == "https://accounts.example/o/oauth2/auth"
    assert query["client_id"] == ["client-123"]
    assert query["state"] == ["state-abc"]
    assert query["response_type"] == ["code"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert "https://www.googleapis.com/auth/cloud-platform" in query["scope"][0].split(" ")


@pytest.mark.asyncio
async def test_state_is_single_use():
    store = OAuthStateStore()
    token = await store.issue(now=100.0)

    assert await store.consume(token, now=101.0) is True
    assert await store.consume(token, now=102.0) is False
    assert await store.consume("never-issued", now=102.0) is False


@pytest.mark.asyncio
async def test_state_expires():
    store = OAuthStateStore(ttl_seconds=60)
    token = await store.issue(now=100.0)
    assert await store.consume(token, now=161.0) is False
