"""Client configuration loaded from OP3_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for :class:`op3.client.http.ApiClient` and the query cache.

    ``OP3_API_URL`` points at the backend's ``/api/v1`` prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="OP3_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_url: str = "http://localhost:3005/api/v1"

    # -- Query cache -----------------------------------------------------------
    stale_time: float = 300.0
    """Seconds a cached query stays fresh."""

    max_retries: int = 3


@lru_cache(maxsize=1)
def get_client_settings() -> ClientSettings:
    return ClientSettings()
