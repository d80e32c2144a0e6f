"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Connection URLs are required; ingestion limits, aggregation bounds and the
energy tariff have defaults that match the dashboard's expectations.

CHANGELOG:
- 2026-10-19: Add OFFLINE_AFTER_S for site marker status
- 2026-10-19: Initial creation

TODO:
- None
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """BMS telemetry service configuration.

    Attributes:
        database_url: SQLAlchemy async URL (postgresql+asyncpg://...).
        redis_url: Redis URL used for the latest-reading cache.
        max_readings_per_request: Maximum readings accepted in one batch.
        max_request_bytes: Maximum ingest request body size in bytes.
        cache_ttl_s: TTL of cached latest readings in seconds.
        analytics_row_limit: Maximum raw readings loaded per analytics query.
        hourly_trend_window: Number of trailing hourly buckets returned.
        energy_unit_rate: Currency per kWh used for energy savings.
        offline_after_s: Seconds without telemetry before a site is offline.
        log_level: Root log level name.
    """

    database_url: str
    redis_url: str
    max_readings_per_request: int = 100
    max_request_bytes: int = 1_048_576
    cache_ttl_s: int = 5
    analytics_row_limit: int = 10_000
    hourly_trend_window: int = 168
    energy_unit_rate: float = 1.5
    offline_after_s: int = 3600
    log_level: str = "INFO"

    @field_validator("max_readings_per_request")
    @classmethod
    def max_readings_must_be_valid(cls, v: int) -> int:
        """Validate batch cap is between 1 and 100."""
        if v < 1 or v > 100:
            raise ValueError("MAX_READINGS_PER_REQUEST must be >= 1 and <= 100")
        return v

    @field_validator(
        "max_request_bytes",
        "analytics_row_limit",
        "hourly_trend_window",
        "offline_after_s",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        """Validate size and window settings are positive."""
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator("cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_valid(cls, v: int) -> int:
        """Validate cache TTL is at least one second."""
        if v < 1:
            raise ValueError("CACHE_TTL_S must be >= 1")
        return v

    @field_validator("energy_unit_rate")
    @classmethod
    def unit_rate_must_be_non_negative(cls, v: float) -> float:
        """Validate the energy tariff is non-negative."""
        if v < 0:
            raise ValueError("ENERGY_UNIT_RATE must be >= 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown LOG_LEVEL '{v}'")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance.

    Raises:
        pydantic.ValidationError: If a required variable is missing or invalid.
    """
    return Settings()
