from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from quonitor.core.errors import ProviderError
from quonitor.core.providers.anthropic import AnthropicProvider
from quonitor.core.providers.openai import OpenAIProvider
from quonitor.core.quota.types import ModelData, QuotaData
from quonitor.core.utils.time import utcnow
from quonitor.db.session import SessionLocal
from quonitor.modules.quotas.repository import QuotaHistoryRepository

pytestmark = pytest.mark.integration


async def _create_account(async_client, app, provider: str = "openai", name: str = "Work") -> str:
    response = await async_client.post(
        "/api/accounts",
        json={"provider": provider, "name": name, "credentials": {"kind": "api_key", "api_key": "sk-test"}},
    )
    assert response.status_code == 200
    await asyncio.gather(*list(app.state.runtime._background_tasks))
    return response.json()["account"]["id"]


@pytest.fixture
def stub_providers(monkeypatch):
    state = {"anthropic_error": None}

    async def openai_fetch(self, credentials):
        return QuotaData(
            tokens_input=1_000,
            tokens_output=500,
            cost_usd=0.01,
            quota_limit=1_000,
            quota_remaining=40,
            model_breakdown=[
                ModelData(model_name="gpt-4o", tokens_input=600, tokens_output=300, cost_usd=0.006, request_count=3),
                ModelData(model_name="gpt-4", tokens_input=400, tokens_output=200, cost_usd=0.004, request_count=1),
            ],
        )

    async def anthropic_fetch(self, credentials):
        if state["anthropic_error"] is not None:
            raise state["anthropic_error"]
        return QuotaData.placeholder("Anthropic API does not support usage tracking yet")

    monkeypatch.setattr(OpenAIProvider, "fetch_quota", openai_fetch)
    monkeypatch.setattr(AnthropicProvider, "fetch_quota", anthropic_fetch)
    return state


@pytest.mark.asyncio
async def test_refresh_all_returns_and_caches_quotas(async_client, app_instance, stub_providers):
    openai_id = await _create_account(async_client, app_instance, "openai")
    anthropic_id = await _create_account(async_client, app_instance, "anthropic")

    response = await async_client.post("/api/quotas/refresh")
    assert response.status_code == 200
    quotas = {entry["accountId"]: entry for entry in response.json()["quotas"]}
    assert set(quotas) == {openai_id, anthropic_id}
    assert quotas[openai_id]["usagePercent"] == pytest.approx(96.0)
    assert quotas[anthropic_id]["usagePercent"] is None
    assert quotas[anthropic_id]["metadata"] == "Anthropic API does not support usage tracking yet"

    listed = await async_client.get("/api/quotas")
    assert {entry["accountId"] for entry in listed.json()["quotas"]} == {openai_id, anthropic_id}


@pytest.mark.asyncio
async def test_refresh_all_skips_failing_account(async_client, app_instance, stub_providers):
    openai_id = await _create_account(async_client, app_instance, "openai")
    await _create_account(async_client, app_instance, "anthropic")
    stub_providers["anthropic_error"] = ProviderError("Anthropic API error (500): boom", status_code=500)

    response = await async_client.post("/api/quotas/refresh")

    assert response.status_code == 200
    assert [entry["accountId"] for entry in response.json()["quotas"]] == [openai_id]


@pytest.mark.asyncio
async def test_refresh_single_account_surfaces_provider_errors(async_client, app_instance, stub_providers):
    anthropic_id = await _create_account(async_client, app_instance, "anthropic")
    stub_providers["anthropic_error"] = ProviderError("Anthropic API error (500): boom", status_code=500)

    response = await async_client.post(f"/api/quotas/{anthropic_id}/refresh")
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "provider_error"

    missing = await async_client.post("/api/quotas/does-not-exist/refresh")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "account_not_found"


@pytest.mark.asyncio
async def test_refresh_single_account_persists_history(async_client, app_instance, stub_providers):
    account_id = await _create_account(async_client, app_instance, "openai")

    response = await async_client.post(f"/api/quotas/{account_id}/refresh")
    assert response.status_code == 200
    assert response.json()["quotaRemaining"] == 40

    snapshots = await async_client.get(f"/api/quotas/{account_id}/snapshots", params={"days": 7})
    assert snapshots.status_code == 200
    rows = snapshots.json()["snapshots"]
    assert len(rows) == 2
    assert rows[0]["recordedAt"].endswith("Z")

    usage = await async_client.get(f"/api/quotas/{account_id}/model-usage")
    assert usage.status_code == 200
    models = sorted(entry["modelName"] for entry in usage.json()["modelUsage"])
    assert models == ["gpt-4", "gpt-4", "gpt-4o", "gpt-4o"]


@pytest.mark.asyncio
async def test_history_days_must_be_positive(async_client):
    response = await async_client.get("/api/quotas/acc/snapshots", params={"days": 0})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cleanup_uses_retention_setting_by_default(async_client, app_instance, stub_providers):
    account_id = await _create_account(async_client, app_instance, "openai")
    async with SessionLocal() as session:
        history = QuotaHistoryRepository(session)
        await history.add_snapshot(QuotaData(account_id=account_id), recorded_at=utcnow() - timedelta(days=120))
        await history.add_snapshot(QuotaData(account_id=account_id), recorded_at=utcnow() - timedelta(days=40))

    response = await async_client.post("/api/quotas/cleanup")
    assert response.status_code == 200
    assert response.json() == {"days": 90, "snapshotsDeleted": 1, "modelUsageDeleted": 0}

    response = await async_client.post("/api/quotas/cleanup", json={"days": 30})
    assert response.status_code == 200
    assert response.json() == {"days": 30, "snapshotsDeleted": 1, "modelUsageDeleted": 0}


@pytest.mark.asyncio
async def test_unknown_quota_returns_404(async_client):
    response = await async_client.get("/api/quotas/unknown")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "quota_not_found"
