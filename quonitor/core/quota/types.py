from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from quonitor.core.utils.time import utcnow


@dataclass(slots=True)
class ModelData:
    model_name: str
    tokens_input: int = 0
    tokens_output: int = 0
    cost_usd: float = 0.0
    request_count: int = 0


@dataclass(slots=True)
class QuotaData:
    # Providers leave `account_id` empty; the aggregator stamps it before the quota is used
    # anywhere downstream.
    account_id: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    tokens_input: int | None = None
    tokens_output: int | None = None
    cost_usd: float | None = None
    quota_limit: int | None = None
    quota_remaining: int | None = None
    model_breakdown: list[ModelData] = field(default_factory=list)
    metadata: str | None = None

    def usage_percent(self) -> float | None:
        return usage_percent(self.quota_limit, self.quota_remaining)

    @classmethod
    def placeholder(cls, metadata: str) -> QuotaData:
        return cls(
            tokens_input=0,
            tokens_output=0,
            cost_usd=0.0,
            metadata=metadata,
        )


def usage_percent(limit: int | None, remaining: int | None) -> float | None:
    if limit is None or remaining is None or limit <= 0:
        return None
    return (limit - remaining) * 100.0 / limit
