from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field

from pydantic import SecretStr

from quonitor.core.auth import OAuthCredentials
from quonitor.core.clients.oauth import (
    build_authorization_url,
    exchange_authorization_code,
    google_oauth_config,
)
from quonitor.core.errors import AuthError
from quonitor.core.quota.types import QuotaData
from quonitor.db.models import Account
from quonitor.modules.accounts.service import AccountsService
from quonitor.modules.oauth.schemas import GoogleOauthStartResponse

logger = logging.getLogger(__name__)

STATE_TTL_SECONDS = 600.0


@dataclass
class OAuthStateStore:
    ttl_seconds: float = STATE_TTL_SECONDS
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _pending: dict[str, float] = field(default_factory=dict)

    async def issue(self, *, now: float | None = None) -> str:
        current = now if now is not None else time.monotonic()
        token = secrets.token_urlsafe(24)
        async with self._lock:
            self._prune_locked(current)
            self._pending[token] = current + self.ttl_seconds
        return token

    async def consume(self, token: str, *, now: float | None = None) -> bool:
        current = now if now is not None else time.monotonic()
        async with self._lock:
            self._prune_locked(current)
            return self._pending.pop(token, None) is not None

    async def reset(self) -> None:
        async with self._lock:
            self._pending.clear()

    def _prune_locked(self, now: float) -> None:
        expired = [token for token, expires_at in self._pending.items() if expires_at <= now]
        for token in expired:
            del self._pending[token]


_OAUTH_STORE = OAuthStateStore()


class GoogleOauthService:
    def __init__(self, accounts_service: AccountsService, store: OAuthStateStore | None = None) -> None:
        self._accounts_service = accounts_service
        self._store = store or _OAUTH_STORE

    async def start(self) -> GoogleOauthStartResponse:
        config = google_oauth_config()
        state = await self._store.issue()
        return GoogleOauthStartResponse(
            authorization_url=build_authorization_url(config, state=state),
            state=state,
            redirect_uri=config.redirect_uri,
        )

    async def complete(self, *, code: str, state: str, name: str) -> tuple[Account, QuotaData]:
        config = google_oauth_config()
        if not await self._store.consume(state):
            raise AuthError("Invalid or expired OAuth state")
        tokens = await exchange_authorization_code(config, code=code)
        credentials = OAuthCredentials(
            access_token=SecretStr(tokens.access_token),
            refresh_token=SecretStr(tokens.refresh_token) if tokens.refresh_token else None,
        )
        logger.info("Google OAuth completed; adding account name=%s", name)
        return await self._accounts_service.add_account("google", name, credentials)
