from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, ClassVar, Mapping, Protocol

import aiohttp
from aiohttp_retry import ExponentialRetry

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials
from quonitor.core.clients.http import get_http_client
from quonitor.core.config.settings import get_settings
from quonitor.core.errors import AuthError, NetworkError, ProviderError
from quonitor.core.quota.types import QuotaData

logger = logging.getLogger(__name__)

_RETRY_STATUSES = {429, 500, 502, 503, 504}
_RETRY_START_TIMEOUT = 0.5
_RETRY_FACTOR = 2.0
_RETRY_MAX_TIMEOUT = 30.0
_ERROR_TEXT_LIMIT = 500


class ProviderResponse(Protocol):
    status: int

    async def json(self, *, content_type: str | None = None) -> Any: ...

    async def text(self) -> str: ...


class ProviderRequestClient(Protocol):
    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_options: ExponentialRetry | None = None,
    ) -> AsyncContextManager[ProviderResponse]: ...


class QuotaProvider(ABC):
    provider_id: ClassVar[str]
    display_name: ClassVar[str]
    supports_oauth: ClassVar[bool] = False

    def __init__(self, *, client: ProviderRequestClient | None = None, base_url: str | None = None) -> None:
        self._client = client
        self._base_url = base_url

    @abstractmethod
    async def fetch_quota(self, credentials: ApiKeyCredentials | OAuthCredentials) -> QuotaData: ...

    @abstractmethod
    def default_base_url(self) -> str: ...

    @property
    def base_url(self) -> str:
        return (self._base_url or self.default_base_url()).rstrip("/")

    def _request_client(self) -> ProviderRequestClient:
        if self._client is not None:
            return self._client
        return get_http_client().retry_client

    async def _get_json(
        self,
        path: str,
        *,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
    ) -> Any:
        settings = get_settings()
        url = f"{self.base_url}{path}"
        retry_options = ExponentialRetry(
            attempts=settings.provider_max_retries + 1,
            statuses=_RETRY_STATUSES,
            start_timeout=_RETRY_START_TIMEOUT,
            factor=_RETRY_FACTOR,
            max_timeout=_RETRY_MAX_TIMEOUT,
        )
        timeout = aiohttp.ClientTimeout(total=settings.provider_timeout_seconds)
        client = self._request_client()
        try:
            async with client.request(
                "GET",
                url,
                headers=headers,
                params=params,
                timeout=timeout,
                retry_options=retry_options,
            ) as resp:
                if not 200 <= resp.status < 300:
                    body = await _safe_text(resp)
                    raise status_error(self.display_name, resp.status, body)
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    raise ProviderError(f"{self.display_name} API returned malformed JSON") from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"{self.display_name} request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"{self.display_name} request timed out") from exc


def provider_deadline_seconds(attempt_timeout: float, max_retries: int) -> float:
    """Upper bound for one provider request including every retry and its backoff."""
    attempts = max_retries + 1
    backoff = sum(
        min(_RETRY_START_TIMEOUT * _RETRY_FACTOR**attempt, _RETRY_MAX_TIMEOUT) for attempt in range(1, attempts)
    )
    return attempt_timeout * attempts + backoff

def status_error(provider_name: str, status: int, body: str) -> AuthError | ProviderError:
    detail = body.strip()[:_ERROR_TEXT_LIMIT] or "Unknown error"
    if status in (401, 403):
        return AuthError(f"{provider_name} rejected credentials ({status}): {detail}")
    return ProviderError(f"{provider_name} API error ({status}): {detail}", status_code=status)


async def _safe_text(resp: ProviderResponse) -> str:
    try:
        return await resp.text()
    except Exception:
        logger.debug("Failed to read provider error body", exc_info=True)
        return ""
