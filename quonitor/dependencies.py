from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from quonitor.db.session import SessionLocal, _safe_close, _safe_rollback, get_session
from quonitor.modules.accounts.repository import AccountsRepository
from quonitor.modules.accounts.service import AccountsService
from quonitor.modules.notifications.repository import NotificationStateRepository
from quonitor.modules.oauth.service import GoogleOauthService
from quonitor.modules.quotas.repo_bundle import QuotaRepositories
from quonitor.modules.quotas.repository import QuotaHistoryRepository
from quonitor.modules.quotas.service import QuotasService
from quonitor.modules.settings.repository import SettingsRepository
from quonitor.modules.settings.service import SettingsService
from quonitor.runtime import QuonitorRuntime


@dataclass(slots=True)
class AccountsContext:
    session: AsyncSession
    repository: AccountsRepository
    service: AccountsService


@dataclass(slots=True)
class QuotasContext:
    session: AsyncSession
    repository: QuotaHistoryRepository
    service: QuotasService


@dataclass(slots=True)
class SettingsContext:
    session: AsyncSession
    repository: SettingsRepository
    service: SettingsService


@dataclass(slots=True)
class OauthContext:
    service: GoogleOauthService


@asynccontextmanager
async def quota_repo_context() -> AsyncIterator[QuotaRepositories]:
    session = SessionLocal()
    try:
        yield QuotaRepositories(
            accounts=AccountsRepository(session),
            history=QuotaHistoryRepository(session),
            notifications=NotificationStateRepository(session),
            settings=SettingsRepository(session),
        )
    except BaseException:
        await _safe_rollback(session)
        raise
    finally:
        if session.in_transaction():
            await _safe_rollback(session)
        await _safe_close(session)


def get_runtime(request: Request) -> QuonitorRuntime:
    return request.app.state.runtime


def get_accounts_context(
    session: AsyncSession = Depends(get_session),
    runtime: QuonitorRuntime = Depends(get_runtime),
) -> AccountsContext:
    repository = AccountsRepository(session)
    service = AccountsService(repository, runtime)
    return AccountsContext(session=session, repository=repository, service=service)


def get_quotas_context(
    session: AsyncSession = Depends(get_session),
    runtime: QuonitorRuntime = Depends(get_runtime),
) -> QuotasContext:
    repository = QuotaHistoryRepository(session)
    service = QuotasService(repository, SettingsRepository(session), runtime)
    return QuotasContext(session=session, repository=repository, service=service)


def get_settings_context(
    session: AsyncSession = Depends(get_session),
    runtime: QuonitorRuntime = Depends(get_runtime),
) -> SettingsContext:
    repository = SettingsRepository(session)
    service = SettingsService(repository, runtime.scheduler)
    return SettingsContext(session=session, repository=repository, service=service)


def get_oauth_context(
    accounts: AccountsContext = Depends(get_accounts_context),
) -> OauthContext:
    return OauthContext(service=GoogleOauthService(accounts.service))
