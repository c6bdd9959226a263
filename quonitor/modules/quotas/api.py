from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from quonitor.core.errors import api_error
from quonitor.dependencies import QuotasContext, get_quotas_context
from quonitor.modules.quotas.mappers import model_usage_to_entry, quota_to_response, snapshot_to_entry
from quonitor.modules.quotas.schemas import (
    CleanupRequest,
    CleanupResponse,
    ModelUsageResponse,
    QuotaResponse,
    QuotasResponse,
    SnapshotsResponse,
)

router = APIRouter(prefix="/api/quotas", tags=["quotas"])


@router.get("", response_model=QuotasResponse)
async def list_quotas(
    context: QuotasContext = Depends(get_quotas_context),
) -> QuotasResponse:
    quotas = await context.service.cached_quotas()
    return QuotasResponse(quotas=[quota_to_response(quota) for quota in quotas])


@router.post("/refresh", response_model=QuotasResponse)
async def refresh_all(
    context: QuotasContext = Depends(get_quotas_context),
) -> QuotasResponse:
    quotas = await context.service.refresh_all()
    return QuotasResponse(quotas=[quota_to_response(quota) for quota in quotas])


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup(
    payload: CleanupRequest | None = Body(default=None),
    context: QuotasContext = Depends(get_quotas_context),
) -> CleanupResponse:
    days = payload.days if payload is not None else None
    retention_days, snapshots, model_rows = await context.service.cleanup(days)
    return CleanupResponse(days=retention_days, snapshots_deleted=snapshots, model_usage_deleted=model_rows)


@router.get("/{account_id}", response_model=QuotaResponse)
async def get_quota(
    account_id: str,
    context: QuotasContext = Depends(get_quotas_context),
) -> QuotaResponse | JSONResponse:
    quota = await context.service.cached_quota(account_id)
    if quota is None:
        return JSONResponse(
            status_code=404,
            content=api_error("quota_not_found", f"No quota cached for account {account_id}"),
        )
    return quota_to_response(quota)


@router.post("/{account_id}/refresh", response_model=QuotaResponse)
async def refresh_account(
    account_id: str,
    context: QuotasContext = Depends(get_quotas_context),
) -> QuotaResponse:
    quota = await context.service.refresh_account(account_id)
    return quota_to_response(quota)


@router.get("/{account_id}/snapshots", response_model=SnapshotsResponse)
async def list_snapshots(
    account_id: str,
    days: int = Query(7, ge=1, le=3650),
    context: QuotasContext = Depends(get_quotas_context),
) -> SnapshotsResponse:
    rows = await context.service.snapshots(account_id, days)
    return SnapshotsResponse(snapshots=[snapshot_to_entry(row) for row in rows])


@router.get("/{account_id}/model-usage", response_model=ModelUsageResponse)
async def list_model_usage(
    account_id: str,
    days: int = Query(7, ge=1, le=3650),
    context: QuotasContext = Depends(get_quotas_context),
) -> ModelUsageResponse:
    rows = await context.service.model_usage(account_id, days)
    return ModelUsageResponse(model_usage=[model_usage_to_entry(row) for row in rows])
