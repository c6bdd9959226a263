from __future__ import annotations

from quonitor.core.quota.types import QuotaData
from quonitor.db.models import ModelUsage, QuotaSnapshot
from quonitor.modules.quotas.schemas import ModelBreakdownEntry, ModelUsageEntry, QuotaResponse, SnapshotEntry


def quota_to_response(quota: QuotaData) -> QuotaResponse:
    return QuotaResponse(
        account_id=quota.account_id,
        timestamp=quota.timestamp,
        tokens_input=quota.tokens_input,
        tokens_output=quota.tokens_output,
        cost_usd=quota.cost_usd,
        quota_limit=quota.quota_limit,
        quota_remaining=quota.quota_remaining,
        usage_percent=quota.usage_percent(),
        model_breakdown=[
            ModelBreakdownEntry(
                model_name=model.model_name,
                tokens_input=model.tokens_input,
                tokens_output=model.tokens_output,
                cost_usd=model.cost_usd,
                request_count=model.request_count,
            )
            for model in quota.model_breakdown
        ],
        metadata=quota.metadata,
    )


def snapshot_to_entry(row: QuotaSnapshot) -> SnapshotEntry:
    return SnapshotEntry(
        id=row.id,
        account_id=row.account_id,
        recorded_at=row.recorded_at,
        tokens_input=row.tokens_input,
        tokens_output=row.tokens_output,
        cost_usd=row.cost_usd,
        quota_limit=row.quota_limit,
        quota_remaining=row.quota_remaining,
        metadata=row.metadata_text,
    )


def model_usage_to_entry(row: ModelUsage) -> ModelUsageEntry:
    return ModelUsageEntry(
        id=row.id,
        account_id=row.account_id,
        recorded_at=row.recorded_at,
        model_name=row.model_name,
        tokens_input=row.tokens_input,
        tokens_output=row.tokens_output,
        cost_usd=row.cost_usd,
        request_count=row.request_count,
    )
