from __future__ import annotations

from quonitor.core.providers import ProviderInfo
from quonitor.db.models import Account
from quonitor.modules.accounts.schemas import AccountSummary, ProviderSummary


def account_to_summary(account: Account) -> AccountSummary:
    return AccountSummary(
        id=account.id,
        provider=account.provider,
        name=account.name,
        created_at=account.created_at,
        last_synced=account.last_synced,
    )


def provider_to_summary(info: ProviderInfo) -> ProviderSummary:
    return ProviderSummary(id=info.id, display_name=info.display_name, supports_oauth=info.supports_oauth)
