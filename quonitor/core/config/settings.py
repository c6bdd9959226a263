from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[3]

DEFAULT_HOME_DIR = Path.home() / ".quonitor"
DEFAULT_DB_PATH = DEFAULT_HOME_DIR / "quonitor.db"
DEFAULT_ENCRYPTION_KEY_FILE = DEFAULT_HOME_DIR / "master.key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUONITOR_",
        env_file=(BASE_DIR / ".env", BASE_DIR / ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = f"sqlite+aiosqlite:///{DEFAULT_DB_PATH}"
    database_pool_size: int = Field(default=5, gt=0)
    database_max_overflow: int = Field(default=5, ge=0)
    database_pool_timeout_seconds: float = Field(default=30.0, gt=0)
    database_migrations_fail_fast: bool = True

    encryption_key_file: Path = DEFAULT_ENCRYPTION_KEY_FILE
    # The OS credential store is tried before the key file. Disable it on headless hosts
    # where the keyring backend would block on an unlock prompt.
    keyring_enabled: bool = True
    keyring_service: str = "quonitor"
    keyring_username: str = "master_key"

    provider_timeout_seconds: float = Field(default=30.0, gt=0)
    provider_max_retries: int = Field(default=2, ge=0)
    openai_base_url: str = "https://api.openai.com"
    anthropic_base_url: str = "https://api.anthropic.com"
    google_resource_manager_base_url: str = "https://cloudresourcemanager.googleapis.com"
    github_api_base_url: str = "https://api.github.com"

    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_redirect_uri: str = "http://localhost:8765/oauth/google/callback"
    google_auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    google_token_url: str = "https://oauth2.googleapis.com/token"

    refresh_enabled: bool = True
    refresh_interval_seconds: int = Field(default=300, gt=0)
    refresh_fetch_concurrency: int = Field(default=4, gt=0)

    notification_webhook_url: str | None = None
    notification_timeout_seconds: float = Field(default=6.0, gt=0)

    http_client_connector_limit: int = Field(default=100, gt=0)
    http_client_connector_limit_per_host: int = Field(default=10, gt=0)
    http_client_keepalive_timeout_seconds: float = Field(default=30.0, gt=0)
    http_client_dns_cache_ttl_seconds: int = Field(default=300, ge=0)

    startup_log_config: bool = False
    startup_log_env: bool = False
    access_log_enabled: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("database_url")
    @classmethod
    def _expand_database_url(cls, value: str) -> str:
        for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
            if value.startswith(prefix):
                path = value[len(prefix) :]
                if path.startswith("~"):
                    return f"{prefix}{Path(path).expanduser()}"
        return value

    @field_validator("encryption_key_file", mode="before")
    @classmethod
    def _expand_encryption_key_file(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("encryption_key_file must be a path")

    @field_validator("notification_webhook_url", "google_client_id", "google_client_secret", mode="before")
    @classmethod
    def _blank_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
