"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the garage manager happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. SECRET_KEY and DATABASE_URL are both
      required in production; debug mode fills them with local defaults and a
      warning so a fresh checkout runs without a .env file.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, shop/, or cache/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("garage.config")

_DEBUG_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'garage_dev.db'}"


def split_csv(value: str) -> list[str]:
    """Split a comma-separated setting into a list of trimmed, non-empty items."""
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either fills a dev value or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = ""
    port: int = 5000

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    cors_origins: str = "*"
    allowed_hosts: str = "*"
    max_body_bytes: int = 1024 * 1024
    frontend_dist: str = "frontend/dist"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 7 * 24 * 60 * 60
    # Fixed bearer token accepted verbatim for local testing. Only honoured
    # when debug is true; see auth.tokens.resolve_dev_token().
    dev_auth_token: str = ""
    self_registration_enabled: bool = True
    reset_code_ttl_seconds: int = 5 * 60
    # Empty -> process-local memory. A path -> SQLite file shared by workers.
    reset_code_store_path: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max: int = 300
    rate_limit_storage_uri: str = "memory://"
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_required_secrets(self) -> "Settings":
        """Enforce the SECRET_KEY / DATABASE_URL startup policy.

        Dev mode (DEBUG=true): auto-generate a random key and fall back to a
            local SQLite file, each with a warning. Tokens will not survive a
            restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if either
            value is missing. The ValueError aborts process startup.

        Both modes: reject keys shorter than 32 characters. Short keys have
            insufficient entropy for HMAC-SHA256 JWT signing.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")

        if not self.database_url:
            if self.debug:
                self.database_url = _DEBUG_DB_URL
                logger.warning("DATABASE_URL not set. Using local SQLite database %s", _DEBUG_DB_URL)
            else:
                raise ValueError(
                    "DATABASE_URL is required in production mode. "
                    "Set DATABASE_URL in your environment or .env file."
                )
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        return split_csv(self.cors_origins) or ["*"]

    @property
    def allowed_host_list(self) -> list[str]:
        return split_csv(self.allowed_hosts) or ["*"]

    @property
    def runtime_mode(self) -> str:
        return "development" if self.debug else "production"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
