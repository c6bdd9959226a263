from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from quonitor.core.auth import Credentials
from quonitor.modules.quotas.schemas import QuotaResponse
from quonitor.modules.shared.schemas import ApiModel


class ProviderSummary(ApiModel):
    id: str
    display_name: str
    supports_oauth: bool


class ProvidersResponse(ApiModel):
    providers: List[ProviderSummary] = Field(default_factory=list)


class AccountSummary(ApiModel):
    id: str
    provider: str
    name: str
    created_at: datetime
    last_synced: datetime | None = None


class AccountsResponse(ApiModel):
    accounts: List[AccountSummary] = Field(default_factory=list)


class AccountCreateRequest(ApiModel):
    provider: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    # Nested credential payloads keep their stored snake_case field names.
    credentials: Credentials


class AccountCreateResponse(ApiModel):
    account: AccountSummary
    quota: QuotaResponse
