from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from sqlalchemy.exc import SQLAlchemyError

from quonitor.core.auth import ApiKeyCredentials, OAuthCredentials
from quonitor.core.config.settings import get_settings
from quonitor.core.crypto import CredentialCipher
from quonitor.core.errors import AccountNotFoundError, DatabaseError, NetworkError, QuonitorError
from quonitor.core.metrics import get_metrics
from quonitor.core.providers import PROVIDERS, QuotaProvider, get_provider
from quonitor.core.providers.base import provider_deadline_seconds
from quonitor.core.quota.types import QuotaData
from quonitor.core.utils.time import utcnow
from quonitor.db.models import Account
from quonitor.modules.quotas.repo_bundle import QuotaRepoFactory, QuotaRepositories

logger = logging.getLogger(__name__)


class QuotaAggregator:
    """Fetches quotas through the provider registry and persists each result.

    Every account is fetched in its own session. A single account failure never aborts
    `fetch_all_quotas`; it is logged and the account is left out of the result.
    """

    def __init__(
        self,
        repo_factory: QuotaRepoFactory,
        cipher: CredentialCipher,
        *,
        registry: Mapping[str, QuotaProvider] | None = None,
        timeout_seconds: float | None = None,
        concurrency: int | None = None,
    ) -> None:
        settings = get_settings()
        self._repo_factory = repo_factory
        self._cipher = cipher
        self._registry = registry if registry is not None else PROVIDERS
        self._timeout_seconds = timeout_seconds or provider_deadline_seconds(
            settings.provider_timeout_seconds, settings.provider_max_retries
        )
        self._concurrency = concurrency or settings.refresh_fetch_concurrency

    async def validate_credentials(
        self,
        provider_id: str,
        credentials: ApiKeyCredentials | OAuthCredentials,
    ) -> QuotaData:
        provider = get_provider(provider_id, self._registry)
        return await self._call_provider(provider, credentials)

    async def fetch_account_quota(self, account_id: str) -> QuotaData:
        provider_label = "unknown"
        try:
            async with self._repo_factory() as repos:
                account = await _load_account(repos, account_id)
                provider_label = account.provider
                provider = get_provider(account.provider, self._registry)
                credentials = self._cipher.decrypt_credentials(account.credentials_encrypted)

            # No session is held while the provider is being called.
            quota = await self._call_provider(provider, credentials)
            quota.account_id = account_id

            async with self._repo_factory() as repos:
                await _persist_quota(repos, quota)
        except Exception:
            get_metrics().observe_account_fetch(provider=provider_label, outcome="error")
            raise
        get_metrics().observe_account_fetch(provider=provider_label, outcome="success")
        return quota

    async def fetch_all_quotas(self) -> list[QuotaData]:
        try:
            async with self._repo_factory() as repos:
                accounts = await repos.accounts.list_accounts()
        except SQLAlchemyError:
            logger.exception("Failed to list accounts for quota fetch")
            return []

        if not accounts:
            return []

        semaphore = asyncio.Semaphore(self._concurrency)
        results = await asyncio.gather(*(self._fetch_isolated(account, semaphore) for account in accounts))
        return [quota for quota in results if quota is not None]

    async def _fetch_isolated(self, account: Account, semaphore: asyncio.Semaphore) -> QuotaData | None:
        async with semaphore:
            try:
                return await self.fetch_account_quota(account.id)
            except QuonitorError as exc:
                logger.warning(
                    "Quota fetch failed account_id=%s provider=%s code=%s error=%s",
                    account.id,
                    account.provider,
                    exc.code,
                    exc.message,
                )
            except Exception:
                logger.exception(
                    "Unexpected quota fetch failure account_id=%s provider=%s",
                    account.id,
                    account.provider,
                )
            return None

    async def _call_provider(
        self,
        provider: QuotaProvider,
        credentials: ApiKeyCredentials | OAuthCredentials,
    ) -> QuotaData:
        try:
            return await asyncio.wait_for(provider.fetch_quota(credentials), timeout=self._timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"{provider.display_name} did not respond within {self._timeout_seconds:g}s") from exc


async def _load_account(repos: QuotaRepositories, account_id: str) -> Account:
    try:
        account = await repos.accounts.get_account(account_id)
    except SQLAlchemyError as exc:
        raise DatabaseError(f"Failed to load account {account_id}: {exc}") from exc
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def _persist_quota(repos: QuotaRepositories, quota: QuotaData) -> None:
    # Snapshot, per-model rows and the sync time land together or not at all.
    synced_at = utcnow()
    try:
        await repos.history.add_snapshot(quota, recorded_at=synced_at, commit=False)
        for model in quota.model_breakdown:
            await repos.history.add_model_usage(quota.account_id, model, recorded_at=synced_at, commit=False)
        await repos.accounts.update_sync_time(quota.account_id, synced_at, commit=False)
        await repos.history.commit()
    except SQLAlchemyError as exc:
        await repos.history.rollback()
        raise DatabaseError(f"Failed to persist quota for account {quota.account_id}: {exc}") from exc
