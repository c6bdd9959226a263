from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from quonitor.core.clients.http import close_http_client, init_http_client
from quonitor.core.config.settings import get_settings
from quonitor.core.config.startup_log import log_startup_config
from quonitor.core.crypto import get_cipher
from quonitor.core.handlers.exceptions import add_exception_handlers
from quonitor.core.middleware import add_api_unhandled_error_middleware, add_request_id_middleware
from quonitor.db.session import close_db, init_db
from quonitor.dependencies import quota_repo_context
from quonitor.modules.accounts import api as accounts_api
from quonitor.modules.metrics import api as metrics_api
from quonitor.modules.oauth import api as oauth_api
from quonitor.modules.quotas import api as quotas_api
from quonitor.modules.settings import api as settings_api
from quonitor.runtime import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_startup_config()
    await init_db()
    await init_http_client()
    runtime = await build_runtime(quota_repo_context, cipher=get_cipher())
    app.state.runtime = runtime
    if get_settings().refresh_enabled:
        await runtime.scheduler.start()

    try:
        yield
    finally:
        try:
            await runtime.shutdown()
        finally:
            try:
                await close_http_client()
            finally:
                await close_db()


def create_app() -> FastAPI:
    app = FastAPI(title="quonitor", version="0.1.0", lifespan=lifespan)

    add_request_id_middleware(app)
    add_api_unhandled_error_middleware(app)
    add_exception_handlers(app)

    app.include_router(accounts_api.providers_router)
    app.include_router(accounts_api.router)
    app.include_router(quotas_api.router)
    app.include_router(settings_api.router)
    app.include_router(oauth_api.router)
    app.include_router(metrics_api.router)

    return app


app = create_app()
