from __future__ import annotations

from pydantic import Field

from quonitor.modules.shared.schemas import ApiModel


class GoogleOauthStartResponse(ApiModel):
    authorization_url: str
    state: str
    redirect_uri: str


class GoogleOauthCompleteRequest(ApiModel):
    code: str = Field(min_length=1)
    state: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
