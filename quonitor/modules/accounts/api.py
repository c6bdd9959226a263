from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from quonitor.core.providers import list_providers
from quonitor.dependencies import AccountsContext, get_accounts_context
from quonitor.modules.accounts.mappers import account_to_summary, provider_to_summary
from quonitor.modules.accounts.schemas import (
    AccountCreateRequest,
    AccountCreateResponse,
    AccountsResponse,
    ProvidersResponse,
)
from quonitor.modules.quotas.mappers import quota_to_response
from quonitor.modules.shared.schemas import StatusResponse

router = APIRouter(prefix="/api/accounts", tags=["accounts"])
providers_router = APIRouter(prefix="/api/providers", tags=["accounts"])


@providers_router.get("", response_model=ProvidersResponse)
async def get_providers() -> ProvidersResponse:
    return ProvidersResponse(providers=[provider_to_summary(info) for info in list_providers()])


@router.get("", response_model=AccountsResponse)
async def list_accounts(
    context: AccountsContext = Depends(get_accounts_context),
) -> AccountsResponse:
    accounts = await context.service.list_accounts()
    return AccountsResponse(accounts=[account_to_summary(account) for account in accounts])


@router.post("", response_model=AccountCreateResponse)
async def add_account(
    payload: AccountCreateRequest = Body(...),
    context: AccountsContext = Depends(get_accounts_context),
) -> AccountCreateResponse:
    account, quota = await context.service.add_account(payload.provider, payload.name, payload.credentials)
    return AccountCreateResponse(account=account_to_summary(account), quota=quota_to_response(quota))


@router.delete("/{account_id}", response_model=StatusResponse)
async def delete_account(
    account_id: str,
    context: AccountsContext = Depends(get_accounts_context),
) -> StatusResponse:
    await context.service.delete_account(account_id)
    return StatusResponse(status="deleted")
