"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All connection strings and tokens come from the environment or a .env file;
nothing is hardcoded.

CHANGELOG:
- 2026-10-14: Add LOG_LEVEL and CORS_ORIGINS parsing (STORY-112)
- 2026-10-12: Initial creation (STORY-102)

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings


class AnalyticsSettings(BaseSettings):
    """Analytics API configuration.

    Attributes:
        database_url: Async SQLAlchemy URL (postgresql+asyncpg://...).
        redis_url: Redis URL used for the site listing cache.
        user_tokens: Comma separated ``token:user_id`` pairs for bearer auth.
        sites_cache_ttl_s: Seconds a cached site listing stays valid.
            Zero disables the cache.
        log_level: Root log level name.
    """

    database_url: str
    redis_url: str
    user_tokens: str
    sites_cache_ttl_s: int = 30
    log_level: str = "INFO"

    @field_validator("sites_cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_non_negative(cls, v: int) -> int:
        """Validate the cache TTL is zero (disabled) or positive."""
        if v < 0:
            raise ValueError("SITES_CACHE_TTL_S must be >= 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate LOG_LEVEL names a standard logging level."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL '{v}' is not a known logging level")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> AnalyticsSettings:
    """Build settings from the current environment.

    Returns:
        AnalyticsSettings: Validated configuration.

    Raises:
        pydantic.ValidationError: If a required variable is missing or invalid.
    """
    return AnalyticsSettings()  # type: ignore[call-arg]


def parse_cors_origins(raw: str) -> list[str]:
    """Split a comma separated CORS_ORIGINS value, dropping empty entries."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
