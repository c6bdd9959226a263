from __future__ import annotations

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials, require_oauth_token
from quonitor.core.config.settings import get_settings
from quonitor.core.providers.base import QuotaProvider
from quonitor.core.quota.types import QuotaData

PLACEHOLDER_METADATA = "Google Cloud tracking enabled"


class GoogleProvider(QuotaProvider):
    provider_id = "google"
    display_name = "Google"
    supports_oauth = True

    def default_base_url(self) -> str:
        return get_settings().google_resource_manager_base_url

    async def fetch_quota(self, credentials: ApiKeyCredentials | OAuthCredentials) -> QuotaData:
        token = require_oauth_token(credentials, self.display_name)
        await self._get_json(
            "/v1/projects",
            headers={"Authorization": f"Bearer {token}"},
            params={"pageSize": "1"},
        )
        return QuotaData.placeholder(PLACEHOLDER_METADATA)
