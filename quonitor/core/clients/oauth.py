from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import aiohttp
from pydantic import BaseModel, ConfigDict, ValidationError

from quonitor.core.clients.http import get_http_client
from quonitor.core.config.settings import get_settings
from quonitor.core.errors import AuthError, ConfigError, NetworkError

logger = logging.getLogger(__name__)

GOOGLE_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/cloud-platform",
    "email",
)


@dataclass(frozen=True, slots=True)
class GoogleOAuthConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    auth_url: str
    token_url: str


class OAuthTokens(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None


def google_oauth_config() -> GoogleOAuthConfig:
    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        raise ConfigError(
            "Google OAuth is not configured (set QUONITOR_GOOGLE_CLIENT_ID and QUONITOR_GOOGLE_CLIENT_SECRET)"
        )
    return GoogleOAuthConfig(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
        auth_url=settings.google_auth_url,
        token_url=settings.google_token_url,
    )


def build_authorization_url(config: GoogleOAuthConfig, *, state: str) -> str:
    query = urlencode(
        {
            "response_type": "code",
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "scope": " ".join(GOOGLE_SCOPES),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
    )
    return f"{config.auth_url}?{query}"


async def exchange_authorization_code(
    config: GoogleOAuthConfig,
    *,
    code: str,
    session: aiohttp.ClientSession | None = None,
) -> OAuthTokens:
    http = session or get_http_client().session
    payload = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "redirect_uri": config.redirect_uri,
    }
    timeout = aiohttp.ClientTimeout(total=get_settings().provider_timeout_seconds)
    try:
        async with http.post(
            config.token_url,
            data=payload,
            headers={"Accept": "application/json"},
            timeout=timeout,
        ) as resp:
            if resp.status >= 400:
                detail = (await resp.text()).strip()[:300] or "Unknown error"
                raise AuthError(f"Token exchange failed ({resp.status}): {detail}")
            try:
                data = await resp.json(content_type=None)
            except ValueError as exc:
                raise AuthError("Token exchange failed: malformed token response") from exc
    except aiohttp.ClientError as exc:
        raise NetworkError(f"Token exchange request failed: {exc}") from exc
    except asyncio.TimeoutError as exc:
        raise NetworkError("Token exchange request timed out") from exc

    try:
        tokens = OAuthTokens.model_validate(data)
    except ValidationError as exc:
        raise AuthError("Token exchange failed: response missing access_token") from exc
    logger.info("Google OAuth code exchanged has_refresh_token=%s", tokens.refresh_token is not None)
    return tokens
