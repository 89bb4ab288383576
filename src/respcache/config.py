"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Every setting has a default, so a bare environment yields a working cache
under ./.cache.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Cache settings loaded from environment variables.

    Optional:
        CACHE_DIR: Directory holding the cache database
        CACHE_DB_NAME: File name of the cache database
        DEFAULT_TTL_SECONDS: TTL applied to namespaces without an explicit entry
        SWEEP_ON_OPEN: Remove expired entries after the store is first opened
        OPEN_RETRY_ATTEMPTS: Attempts made to open the store before giving up
        BUSY_TIMEOUT_SECONDS: SQLite busy timeout
        LOG_LEVEL: Logging level
        LOG_FILE: Optional JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    CACHE_DIR: Path = Field(default=Path(".cache"), description="Cache directory")
    CACHE_DB_NAME: str = Field(
        default="api_cache.db", description="Cache database file name"
    )

    # Expiry
    DEFAULT_TTL_SECONDS: int = Field(
        default=24 * 60 * 60,
        gt=0,
        description="TTL for namespaces without an explicit entry",
    )
    SWEEP_ON_OPEN: bool = Field(
        default=True, description="Run the expiry sweep once after the first open"
    )

    # Store handle
    OPEN_RETRY_ATTEMPTS: int = Field(
        default=3, ge=1, le=10, description="Attempts to open the store"
    )
    BUSY_TIMEOUT_SECONDS: float = Field(
        default=5.0, gt=0.0, description="SQLite busy timeout in seconds"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("CACHE_DB_NAME")
    @classmethod
    def validate_db_name(cls, v: str) -> str:
        """Validate that CACHE_DB_NAME is a bare file name."""
        v = v.strip()
        if not v:
            raise ValueError("CACHE_DB_NAME must not be empty")
        if "/" in v or "\\" in v:
            raise ValueError(
                "CACHE_DB_NAME must be a file name; use CACHE_DIR for the directory"
            )
        return v

    @property
    def db_path(self) -> Path:
        """Full path of the cache database."""
        return self.CACHE_DIR / self.CACHE_DB_NAME


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
