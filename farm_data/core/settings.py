# ==============================================================================
# SETTINGS CONFIGURATION - Environment Management
# ==============================================================================
# Pydantic Settings for type-safe environment variable management
# Covers the storage engine, query execution limits and rate limiting
# ==============================================================================

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import FrozenSet

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Application Settings Configuration.

    Manages all environment variables with type validation and defaults.
    Uses Pydantic BaseSettings for automatic .env file loading and
    environment variable parsing.

    Attributes:
        APP_NAME: Application display name
        ENVIRONMENT: Current deployment environment
        SQLITE_URL: SQLite database location
        DB_*: Query execution tuning (limits, retries, timeouts)
        RATE_LIMIT_*: Per-actor sliding window configuration

    Example:
        >>> from farm_data.core.settings import settings
        >>> settings.DB_MAX_LIMIT
        1000
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # APPLICATION SETTINGS
    # --------------------------------------------------------------------------
    APP_NAME: str = Field(
        default="Farm Data Core",
        description="Application display name"
    )
    APP_VERSION: str = Field(
        default="1.0.0",
        description="Application semantic version"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (logs, stack traces)"
    )
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Current deployment environment"
    )

    # --------------------------------------------------------------------------
    # SQLITE CONFIGURATION
    # --------------------------------------------------------------------------
    SQLITE_URL: str = Field(
        default="sqlite:///./farm_data.db",
        description="SQLite database file path"
    )
    DB_ECHO: bool = Field(
        default=False,
        description="Echo SQL emitted by the engine"
    )

    # --------------------------------------------------------------------------
    # QUERY EXECUTION
    # --------------------------------------------------------------------------
    DB_DEFAULT_LIMIT: int = Field(
        default=100,
        ge=1,
        description="Default page size for find_many"
    )
    DB_MAX_LIMIT: int = Field(
        default=1000,
        ge=1,
        description="Upper bound applied to every find_many limit"
    )
    DB_DEFAULT_RETRIES: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts per query"
    )
    DB_INITIAL_RETRY_DELAY_MS: int = Field(
        default=100,
        ge=0,
        description="Backoff delay before the second attempt"
    )
    DB_MAX_RETRY_DELAY_MS: int = Field(
        default=2000,
        ge=0,
        description="Ceiling for the exponential backoff delay"
    )
    DB_QUERY_TIMEOUT_MS: int = Field(
        default=30000,
        ge=1,
        description="Deadline for a single query attempt"
    )
    DB_SLOW_QUERY_THRESHOLD_MS: int = Field(
        default=1000,
        ge=0,
        description="Queries slower than this are tracked and logged"
    )
    DB_SLOW_QUERY_BUFFER_SIZE: int = Field(
        default=100,
        ge=1,
        description="Number of slow queries kept in memory"
    )
    DB_MAX_TRANSACTION_OPERATIONS: int = Field(
        default=100,
        ge=1,
        description="Maximum operations in one atomic batch"
    )
    DB_RETRYABLE_ERROR_KINDS: str = Field(
        default="busy,locked,timeout",
        description="Comma separated storage error kinds eligible for retry"
    )

    # --------------------------------------------------------------------------
    # RATE LIMITING
    # --------------------------------------------------------------------------
    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Enable per-actor query rate limiting"
    )
    RATE_LIMIT_MAX_QUERIES: int = Field(
        default=100,
        ge=1,
        description="Maximum queries per actor per window"
    )
    RATE_LIMIT_WINDOW_MS: int = Field(
        default=60000,
        ge=1,
        description="Sliding window length in milliseconds"
    )
    RATE_LIMIT_CLEANUP_PROBABILITY: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Chance per check of sweeping idle actors"
    )

    # --------------------------------------------------------------------------
    # LOGGING CONFIGURATION
    # --------------------------------------------------------------------------
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    LOG_FORMAT: str = Field(
        default="json",
        description="Log format (json, text)"
    )
    LOG_QUERIES_IN_PRODUCTION: bool = Field(
        default=False,
        description="Log every successful query even in production"
    )

    # --------------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # --------------------------------------------------------------------------
    @computed_field
    @property
    def sqlite_async_url(self) -> str:
        """
        Construct SQLite async connection URL.

        Returns:
            Async SQLite connection string with aiosqlite driver
        """
        if "aiosqlite" in self.SQLITE_URL:
            return self.SQLITE_URL
        return self.SQLITE_URL.replace("sqlite://", "sqlite+aiosqlite://")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    @computed_field
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    @property
    def retryable_error_kinds(self) -> FrozenSet[str]:
        """Parsed set of retryable storage error kinds."""
        return frozenset(
            kind.strip().lower()
            for kind in self.DB_RETRYABLE_ERROR_KINDS.split(",")
            if kind.strip()
        )

    # --------------------------------------------------------------------------
    # VALIDATORS
    # --------------------------------------------------------------------------
    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only json and text formatters exist."""
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v

    @field_validator("DB_MAX_RETRY_DELAY_MS")
    @classmethod
    def validate_max_delay(cls, v: int, info) -> int:
        """Keep the ceiling at or above the initial delay."""
        initial = info.data.get("DB_INITIAL_RETRY_DELAY_MS", 0)
        return max(v, initial)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Uses lru_cache to ensure settings are only loaded once,
    providing a singleton-like behavior for the settings object.

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


# Module-level settings instance for convenient imports
settings = get_settings()
