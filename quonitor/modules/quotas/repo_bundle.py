from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import AsyncContextManager

from quonitor.modules.accounts.repository import AccountsRepository
from quonitor.modules.notifications.repository import NotificationStateRepository
from quonitor.modules.quotas.repository import QuotaHistoryRepository
from quonitor.modules.settings.repository import SettingsRepository


@dataclass(slots=True)
class QuotaRepositories:
    # All repositories share one session so a fetch can persist in a single transaction.
    accounts: AccountsRepository
    history: QuotaHistoryRepository
    notifications: NotificationStateRepository
    settings: SettingsRepository


QuotaRepoFactory = Callable[[], AsyncContextManager[QuotaRepositories]]
