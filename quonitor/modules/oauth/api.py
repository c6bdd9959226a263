from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from quonitor.dependencies import OauthContext, get_oauth_context
from quonitor.modules.accounts.mappers import account_to_summary
from quonitor.modules.accounts.schemas import AccountCreateResponse
from quonitor.modules.oauth.schemas import GoogleOauthCompleteRequest, GoogleOauthStartResponse
from quonitor.modules.quotas.mappers import quota_to_response

router = APIRouter(prefix="/api/oauth", tags=["oauth"])


@router.post("/google/start", response_model=GoogleOauthStartResponse)
async def start_google_oauth(
    context: OauthContext = Depends(get_oauth_context),
) -> GoogleOauthStartResponse:
    return await context.service.start()


@router.post("/google/complete", response_model=AccountCreateResponse)
async def complete_google_oauth(
    payload: GoogleOauthCompleteRequest = Body(...),
    context: OauthContext = Depends(get_oauth_context),
) -> AccountCreateResponse:
    account, quota = await context.service.complete(code=payload.code, state=payload.state, name=payload.name)
    return AccountCreateResponse(account=account_to_summary(account), quota=quota_to_response(quota))
