from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials, require_api_key
from quonitor.core.config.settings import get_settings
from quonitor.core.errors import ProviderError
from quonitor.core.providers.base import QuotaProvider
from quonitor.core.providers.pricing import calculate_cost
from quonitor.core.quota.types import ModelData, QuotaData
from quonitor.core.utils.time import to_epoch_seconds_assuming_utc, utcnow

logger = logging.getLogger(__name__)

USAGE_PATH = "/v1/organization/usage/completions"
UNKNOWN_MODEL = "unknown"


class UsageResult(BaseModel):
    """One usage row. Accepts both the bucketed and the legacy flat field names."""

    model_config = ConfigDict(extra="ignore")

    model: str | None = None
    input_tokens: int = Field(
        default=0,
        validation_alias=AliasChoices("input_tokens", "n_context_tokens_total"),
    )
    output_tokens: int = Field(
        default=0,
        validation_alias=AliasChoices("output_tokens", "n_generated_tokens_total"),
    )
    requests: int = Field(
        default=0,
        validation_alias=AliasChoices("num_model_requests", "n_requests"),
    )


class UsagePage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: list[dict[str, object]] = Field(default_factory=list)


@dataclass(slots=True)
class _ModelTotals:
    input_tokens: int = 0
    output_tokens: int = 0
    requests: int = 0


def _iter_results(page: UsagePage) -> list[UsageResult]:
    results: list[UsageResult] = []
    for item in page.data:
        nested = item.get("results")
        if isinstance(nested, list):
            results.extend(UsageResult.model_validate(entry) for entry in nested if isinstance(entry, dict))
        else:
            results.append(UsageResult.model_validate(item))
    return results


def aggregate_usage(payload: object) -> QuotaData:
    try:
        page = UsagePage.model_validate(payload)
        results = _iter_results(page)
    except ValidationError as exc:
        raise ProviderError("OpenAI usage response has an unexpected shape") from exc

    per_model: dict[str, _ModelTotals] = {}
    for result in results:
        totals = per_model.setdefault(result.model or UNKNOWN_MODEL, _ModelTotals())
        totals.input_tokens += result.input_tokens
        totals.output_tokens += result.output_tokens
        totals.requests += result.requests

    breakdown: list[ModelData] = []
    total_input = 0
    total_output = 0
    total_cost = 0.0
    for model_name, totals in per_model.items():
        cost = calculate_cost(OpenAIProvider.provider_id, model_name, totals.input_tokens, totals.output_tokens)
        total_input += totals.input_tokens
        total_output += totals.output_tokens
        total_cost += cost
        breakdown.append(
            ModelData(
                model_name=model_name,
                tokens_input=totals.input_tokens,
                tokens_output=totals.output_tokens,
                cost_usd=cost,
                request_count=totals.requests,
            )
        )

    return QuotaData(
        tokens_input=total_input,
        tokens_output=total_output,
        cost_usd=total_cost,
        quota_limit=None,
        quota_remaining=None,
        model_breakdown=breakdown,
    )


class OpenAIProvider(QuotaProvider):
    provider_id = "openai"
    display_name = "OpenAI"
    supports_oauth = False

    def default_base_url(self) -> str:
        return get_settings().openai_base_url

    async def fetch_quota(self, credentials: ApiKeyCredentials | OAuthCredentials) -> QuotaData:
        api_key = require_api_key(credentials, self.display_name)
        end = utcnow()
        start = end - timedelta(days=1)
        payload = await self._get_json(
            USAGE_PATH,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            params={
                "start_time": str(to_epoch_seconds_assuming_utc(start)),
                "end_time": str(to_epoch_seconds_assuming_utc(end)),
                "bucket_width": "1d",
                "group_by": "model",
            },
        )
        quota = aggregate_usage(payload)
        quota.timestamp = end
        logger.debug(
            "OpenAI usage aggregated models=%s tokens_in=%s tokens_out=%s",
            len(quota.model_breakdown),
            quota.tokens_input,
            quota.tokens_output,
        )
        return quota
