"""Service configuration loaded from OP3_* environment variables."""

from __future__ import annotations

import secrets
from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Op3Settings(BaseSettings):
    """OP3 backend settings.

    All fields are read from environment variables with the ``OP3_`` prefix.
    For example, ``OP3_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    AI provider keys are **not** managed here -- they are entered through the
    setup wizard and stored (encrypted) in the database.
    """

    model_config = SettingsConfigDict(
        env_prefix="OP3_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Runtime ---------------------------------------------------------------
    environment: Literal["development", "production", "test"] = "development"

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """SQLAlchemy async URL, e.g. ``postgresql+psycopg://...`` or ``sqlite+aiosqlite:///op3.db``."""

    # -- Auth ------------------------------------------------------------------
    auth_url: str = "http://localhost:3000"
    """Public base URL of the auth frontend (used to build share links)."""

    auth_secret: SecretStr | None = None
    """Server secret.  Also keys the encryption of stored provider API keys."""

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3005
    frontend_url: str = "http://localhost:3000"
    """Allowed CORS origin."""

    # -- Helpers ---------------------------------------------------------------

    def resolve_auth_secret(self) -> str:
        """Return the configured secret or generate a random one."""
        if self.auth_secret is not None:
            return self.auth_secret.get_secret_value()
        return secrets.token_urlsafe(32)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Op3Settings:
    """Process-wide settings, read once.  Tests call ``get_settings.cache_clear()``."""
    return Op3Settings()
