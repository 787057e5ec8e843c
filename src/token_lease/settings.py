"""
token_lease.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings (PORT, APP_ID, INSTALLATION_ID, ...).
- Fail fast on missing GitHub App identity or an unreadable private key.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

from token_lease.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Env names are unprefixed so existing deployments (PORT, APP_ID, TOKEN_LIFESPAN, ...)
    keep working. Durations are milliseconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    env: Literal["dev", "test", "prod"] = "prod"
    service_name: str = "token-lease"
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 3000

    # GitHub App identity
    app_id: str | None = None
    installation_id: str | None = None
    private_key_path: str | None = None

    # Upstream
    github_api_url: str = "https://api.github.com"
    http_timeout_seconds: PositiveFloat = 10.0

    # Lifecycle (milliseconds)
    cache_check_interval: PositiveInt = 60_000
    token_lifespan: PositiveInt = 300_000

    @property
    def lifespan(self) -> timedelta:
        return timedelta(milliseconds=self.token_lifespan)

    @property
    def sweep_interval(self) -> timedelta:
        return timedelta(milliseconds=self.cache_check_interval)


def validate_settings(settings: Settings) -> None:
    if not settings.app_id:
        raise ConfigurationError("APP_ID is required")
    if not settings.installation_id:
        raise ConfigurationError("INSTALLATION_ID is required")
    if not settings.private_key_path or not Path(settings.private_key_path).is_file():
        raise ConfigurationError(f"Private key file not found: {settings.private_key_path}")


def load_private_key(settings: Settings) -> str:
    validate_settings(settings)
    try:
        pem = Path(settings.private_key_path).read_text(encoding="utf-8")  # type: ignore[arg-type]
    except OSError as e:
        raise ConfigurationError(f"Private key file unreadable: {settings.private_key_path}") from e
    if not pem.strip():
        raise ConfigurationError(f"Private key file is empty: {settings.private_key_path}")
    return pem


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Settings are loaded once at startup and are not reloadable; the private key is read
# exactly once and handed to the provider client as read-only material.
