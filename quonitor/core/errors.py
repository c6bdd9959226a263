from __future__ import annotations

from typing import ClassVar, TypedDict


class ApiErrorDetail(TypedDict):
    code: str
    message: str


class ApiErrorEnvelope(TypedDict):
    error: ApiErrorDetail


def api_error(code: str, message: str) -> ApiErrorEnvelope:
    return {"error": {"code": code, "message": message}}


class QuonitorError(Exception):
    code: ClassVar[str] = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_envelope(self) -> ApiErrorEnvelope:
        return api_error(self.code, self.message)


class AuthError(QuonitorError):
    """Missing or rejected credential for the attempted operation."""

    code = "auth_error"


class ProviderError(QuonitorError):
    """Non-success response or malformed payload from an upstream usage API."""

    code = "provider_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(QuonitorError):
    code = "network_error"


class EncryptionError(QuonitorError):
    code = "encryption_error"


class DatabaseError(QuonitorError):
    code = "database_error"


class ConfigError(QuonitorError):
    code = "config_error"


class AccountNotFoundError(ConfigError):
    code = "account_not_found"

    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class UnknownProviderError(ConfigError):
    code = "unknown_provider"

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider {provider_id} not found")
        self.provider_id = provider_id
