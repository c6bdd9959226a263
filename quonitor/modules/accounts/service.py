from __future__ import annotations

import logging

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials, generate_account_id
from quonitor.core.errors import AccountNotFoundError
from quonitor.core.metrics import get_metrics
from quonitor.core.providers import get_provider
from quonitor.core.quota.types import QuotaData
from quonitor.core.utils.time import utcnow
from quonitor.db.models import Account
from quonitor.modules.accounts.repository import AccountsRepository
from quonitor.runtime import QuonitorRuntime

logger = logging.getLogger(__name__)


class AccountsService:
    def __init__(self, repo: AccountsRepository, runtime: QuonitorRuntime) -> None:
        self._repo = repo
        self._runtime = runtime

    async def list_accounts(self) -> list[Account]:
        return await self._repo.list_accounts()

    async def add_account(
        self,
        provider_id: str,
        name: str,
        credentials: ApiKeyCredentials | OAuthCredentials,
    ) -> tuple[Account, QuotaData]:
        get_provider(provider_id)
        # Prove the credential works before anything is stored.
        initial_quota = await self._runtime.aggregator.validate_credentials(provider_id, credentials)

        account = Account(
            id=generate_account_id(),
            provider=provider_id,
            name=name.strip(),
            credentials_encrypted=self._runtime.cipher.encrypt_credentials(credentials),
            created_at=utcnow(),
            last_synced=None,
        )
        account = await self._repo.insert(account)

        initial_quota.account_id = account.id
        await self._runtime.cache.set(account.id, initial_quota)
        self._runtime.spawn(self._initial_fetch(account.id), name=f"initial-fetch-{account.id}")
        logger.info("Account added account_id=%s provider=%s", account.id, provider_id)
        return account, initial_quota

    async def delete_account(self, account_id: str) -> None:
        deleted = await self._repo.delete(account_id)
        if not deleted:
            raise AccountNotFoundError(account_id)
        await self._runtime.cache.remove(account_id)
        get_metrics().remove_account(account_id)
        logger.info("Account removed account_id=%s", account_id)

    async def _initial_fetch(self, account_id: str) -> None:
        try:
            quota = await self._runtime.aggregator.fetch_account_quota(account_id)
        except Exception:
            logger.warning("Initial quota fetch failed account_id=%s", account_id, exc_info=True)
            return
        await self._runtime.cache.set(account_id, quota)
        get_metrics().set_account_usage_percent(account_id, quota.usage_percent())
