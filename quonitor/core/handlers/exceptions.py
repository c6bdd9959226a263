from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import (
    http_exception_handler,
    request_validation_exception_handler,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from quonitor.core.errors import (
    AccountNotFoundError,
    AuthError,
    ConfigError,
    NetworkError,
    ProviderError,
    QuonitorError,
    api_error,
)

logger = logging.getLogger(__name__)


def status_for_error(exc: QuonitorError) -> int:
    if isinstance(exc, AccountNotFoundError):
        return 404
    if isinstance(exc, ConfigError):
        return 400
    if isinstance(exc, AuthError):
        return 401
    if isinstance(exc, (ProviderError, NetworkError)):
        return 502
    return 500


def add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuonitorError)
    async def quonitor_error_handler(
        request: Request,
        exc: QuonitorError,
    ) -> Response:
        status_code = status_for_error(exc)
        if status_code >= 500:
            logger.error("API request failed path=%s code=%s error=%s", request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=status_code, content=exc.to_envelope())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> Response:
        if request.url.path.startswith("/api/"):
            return JSONResponse(
                status_code=422,
                content=api_error("validation_error", "Invalid request payload"),
            )
        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> Response:
        if request.url.path.startswith("/api/"):
            detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
            return JSONResponse(
                status_code=exc.status_code,
                content=api_error(f"http_{exc.status_code}", detail),
            )
        return await http_exception_handler(request, exc)
