from __future__ import annotations

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials, require_api_key
from quonitor.core.config.settings import get_settings
from quonitor.core.providers.base import QuotaProvider
from quonitor.core.quota.types import QuotaData

ANTHROPIC_VERSION = "2023-06-01"
PLACEHOLDER_METADATA = "Anthropic API does not support usage tracking yet"


class AnthropicProvider(QuotaProvider):
    """Validates the key against the models listing; no usage endpoint exists to poll."""

    provider_id = "anthropic"
    display_name = "Anthropic"
    supports_oauth = False

    def default_base_url(self) -> str:
        return get_settings().anthropic_base_url

    async def fetch_quota(self, credentials: ApiKeyCredentials | OAuthCredentials) -> QuotaData:
        api_key = require_api_key(credentials, self.display_name)
        await self._get_json(
            "/v1/models",
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            params={"limit": "1"},
        )
        return QuotaData.placeholder(PLACEHOLDER_METADATA)
