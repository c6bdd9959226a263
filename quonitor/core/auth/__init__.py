from __future__ import annotations

import json
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, SecretStr, TypeAdapter, ValidationError

from quonitor.core.errors import AuthError


class ApiKeyCredentials(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: Literal["api_key"] = "api_key"
    api_key: SecretStr


class OAuthCredentials(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: Literal["oauth"] = "oauth"
    access_token: SecretStr
    refresh_token: SecretStr | None = None


Credentials = Annotated[Union[ApiKeyCredentials, OAuthCredentials], Field(discriminator="kind")]

_CREDENTIALS_ADAPTER: TypeAdapter[ApiKeyCredentials | OAuthCredentials] = TypeAdapter(Credentials)


def parse_credentials(data: object) -> ApiKeyCredentials | OAuthCredentials:
    return _CREDENTIALS_ADAPTER.validate_python(data)


def dump_credentials(credentials: ApiKeyCredentials | OAuthCredentials) -> str:
    # SecretStr hides values in repr and in a plain model_dump; unwrap explicitly for storage only.
    payload: dict[str, str | None] = {"kind": credentials.kind}
    if isinstance(credentials, ApiKeyCredentials):
        payload["api_key"] = credentials.api_key.get_secret_value()
    else:
        payload["access_token"] = credentials.access_token.get_secret_value()
        payload["refresh_token"] = (
            credentials.refresh_token.get_secret_value() if credentials.refresh_token is not None else None
        )
    return json.dumps(payload, ensure_ascii=True, separators=(",", ":"))


def load_credentials(raw: str) -> ApiKeyCredentials | OAuthCredentials:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("Stored credentials are not valid JSON") from exc
    try:
        return parse_credentials(data)
    except ValidationError as exc:
        raise ValueError("Stored credentials have an unknown shape") from exc


def require_api_key(credentials: ApiKeyCredentials | OAuthCredentials, provider_name: str) -> str:
    if isinstance(credentials, ApiKeyCredentials):
        value = credentials.api_key.get_secret_value().strip()
        if value:
            return value
    raise AuthError(f"{provider_name} requires API key")


def require_oauth_token(credentials: ApiKeyCredentials | OAuthCredentials, provider_name: str) -> str:
    if isinstance(credentials, OAuthCredentials):
        value = credentials.access_token.get_secret_value().strip()
        if value:
            return value
    raise AuthError(f"{provider_name} requires OAuth token")


def bearer_token(credentials: ApiKeyCredentials | OAuthCredentials, provider_name: str) -> str:
    if isinstance(credentials, OAuthCredentials):
        value = credentials.access_token.get_secret_value().strip()
    else:
        value = credentials.api_key.get_secret_value().strip()
    if not value:
        raise AuthError(f"{provider_name} requires OAuth token or API key")
    return value


def generate_account_id() -> str:
    return str(uuid4())
