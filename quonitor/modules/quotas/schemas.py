from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from quonitor.modules.shared.schemas import ApiModel


class ModelBreakdownEntry(ApiModel):
    model_name: str
    tokens_input: int
    tokens_output: int
    cost_usd: float
    request_count: int


class QuotaResponse(ApiModel):
    account_id: str
    timestamp: datetime
    tokens_input: int | None = None
    tokens_output: int | None = None
    cost_usd: float | None = None
    quota_limit: int | None = None
    quota_remaining: int | None = None
    usage_percent: float | None = None
    model_breakdown: List[ModelBreakdownEntry] = Field(default_factory=list)
    metadata: str | None = None


class QuotasResponse(ApiModel):
    quotas: List[QuotaResponse] = Field(default_factory=list)


class SnapshotEntry(ApiModel):
    id: int
    account_id: str
    recorded_at: datetime
    tokens_input: int | None = None
    tokens_output: int | None = None
    cost_usd: float | None = None
    quota_limit: int | None = None
    quota_remaining: int | None = None
    metadata: str | None = None


class SnapshotsResponse(ApiModel):
    snapshots: List[SnapshotEntry] = Field(default_factory=list)


class ModelUsageEntry(ApiModel):
    id: int
    account_id: str
    recorded_at: datetime
    model_name: str
    tokens_input: int
    tokens_output: int
    cost_usd: float
    request_count: int


class ModelUsageResponse(ApiModel):
    model_usage: List[ModelUsageEntry] = Field(default_factory=list)


class CleanupRequest(ApiModel):
    days: int | None = Field(default=None, ge=1)


class CleanupResponse(ApiModel):
    days: int
    snapshots_deleted: int
    model_usage_deleted: int
