from __future__ import annotations

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials, bearer_token
from quonitor.core.config.settings import get_settings
from quonitor.core.providers.base import QuotaProvider
from quonitor.core.quota.types import QuotaData

PLACEHOLDER_METADATA = "GitHub Copilot usage tracking not available"


class GitHubProvider(QuotaProvider):
    """Accepts an OAuth token or a personal access token stored as an API key."""

    provider_id = "github"
    display_name = "GitHub"
    supports_oauth = True

    def default_base_url(self) -> str:
        return get_settings().github_api_base_url

    async def fetch_quota(self, credentials: ApiKeyCredentials | OAuthCredentials) -> QuotaData:
        token = bearer_token(credentials, self.display_name)
        await self._get_json(
            "/user",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
        )
        return QuotaData.placeholder(PLACEHOLDER_METADATA)
