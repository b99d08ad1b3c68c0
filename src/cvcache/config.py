"""
Configuration management using pydantic-settings.

Loads cache and retry tuning from environment variables and .env files.
Validates bounds and cross-field constraints and provides typed access.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from cvcache.retry import RetryPolicy

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Cache settings loaded from environment variables.

    Optional:
        CACHE_MAX_SIZE_BYTES: Byte budget enforced by eviction
        CACHE_CLEANUP_INTERVAL_MS: Period of the expired-entry sweep
        CACHE_DEFAULT_TTL_MS: TTL used when a write omits one (unset = unbounded)
        CACHE_DEFAULT_STALE_TTL_MS: Stale horizon used when a write omits one
        CACHE_MAX_BACKGROUND_REFRESHES: Concurrent background refresh cap
        RETRY_MAX_ATTEMPTS: Fetch attempts per invocation
        RETRY_INITIAL_DELAY_MS: First retry delay
        RETRY_MAX_DELAY_MS: Retry delay ceiling
        RETRY_BACKOFF_MULTIPLIER: Exponential backoff factor
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache budget and housekeeping
    CACHE_MAX_SIZE_BYTES: int = Field(
        default=10 * MIB, ge=1, description="Maximum resident size in bytes"
    )
    CACHE_CLEANUP_INTERVAL_MS: int = Field(
        default=60_000, ge=1, description="Interval between cleanup sweeps"
    )

    # Entry defaults
    CACHE_DEFAULT_TTL_MS: int | None = Field(
        default=None, ge=0, description="Default freshness window (None = unbounded)"
    )
    CACHE_DEFAULT_STALE_TTL_MS: int | None = Field(
        default=None, ge=0, description="Default stale horizon (None = no stale window)"
    )
    CACHE_MAX_BACKGROUND_REFRESHES: int = Field(
        default=4, ge=1, le=64, description="Maximum concurrent background refreshes"
    )

    # Retry policy for fetchers
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1, le=10, description="Fetch attempts")
    RETRY_INITIAL_DELAY_MS: int = Field(default=1_000, ge=0, description="First retry delay")
    RETRY_MAX_DELAY_MS: int = Field(default=5_000, ge=0, description="Retry delay ceiling")
    RETRY_BACKOFF_MULTIPLIER: float = Field(
        default=2.0, ge=1.0, description="Exponential backoff multiplier"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @model_validator(mode="after")
    def validate_stale_window(self) -> Settings:
        """Ensure the default stale horizon does not end before the TTL."""
        if (
            self.CACHE_DEFAULT_STALE_TTL_MS is not None
            and self.CACHE_DEFAULT_TTL_MS is not None
            and self.CACHE_DEFAULT_STALE_TTL_MS < self.CACHE_DEFAULT_TTL_MS
        ):
            raise ValueError(
                "CACHE_DEFAULT_STALE_TTL_MS must be >= CACHE_DEFAULT_TTL_MS"
            )
        return self

    @model_validator(mode="after")
    def validate_retry_delays(self) -> Settings:
        """Ensure the retry ceiling is not below the first delay."""
        if self.RETRY_MAX_DELAY_MS < self.RETRY_INITIAL_DELAY_MS:
            raise ValueError("RETRY_MAX_DELAY_MS must be >= RETRY_INITIAL_DELAY_MS")
        return self

    @property
    def cleanup_interval_seconds(self) -> float:
        """Get the cleanup interval in seconds."""
        return self.CACHE_CLEANUP_INTERVAL_MS / 1000.0

    def retry_policy(self) -> RetryPolicy:
        """Build the fetch retry policy from these settings."""
        from cvcache.retry import RetryPolicy

        return RetryPolicy(
            max_attempts=self.RETRY_MAX_ATTEMPTS,
            initial_delay_ms=self.RETRY_INITIAL_DELAY_MS,
            max_delay_ms=self.RETRY_MAX_DELAY_MS,
            backoff_multiplier=self.RETRY_BACKOFF_MULTIPLIER,
        )

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return the effective settings for diagnostics output."""
        return {
            "CACHE_MAX_SIZE_BYTES": self.CACHE_MAX_SIZE_BYTES,
            "CACHE_CLEANUP_INTERVAL_MS": self.CACHE_CLEANUP_INTERVAL_MS,
            "CACHE_DEFAULT_TTL_MS": self.CACHE_DEFAULT_TTL_MS,
            "CACHE_DEFAULT_STALE_TTL_MS": self.CACHE_DEFAULT_STALE_TTL_MS,
            "CACHE_MAX_BACKGROUND_REFRESHES": self.CACHE_MAX_BACKGROUND_REFRESHES,
            "RETRY_MAX_ATTEMPTS": self.RETRY_MAX_ATTEMPTS,
            "RETRY_INITIAL_DELAY_MS": self.RETRY_INITIAL_DELAY_MS,
            "RETRY_MAX_DELAY_MS": self.RETRY_MAX_DELAY_MS,
            "RETRY_BACKOFF_MULTIPLIER": self.RETRY_BACKOFF_MULTIPLIER,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are present but invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
