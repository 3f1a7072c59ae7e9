"""Configuration management using Pydantic Settings.

Loads configuration from environment variables with validation.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cachelayer.domain.exceptions import ConfigurationError
from cachelayer.shared.durations import parse_duration


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_title: str = Field(default="Cache Layer Service", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")
    api_description: str = Field(
        default="Async memoization and on-disk response caching with TTL and retry",
        description="API description",
    )

    # Store Configuration
    cache_modules: list[str] = Field(
        default=["memory"],
        min_length=1,
        description="Cache store modules in priority order; the first is the primary store",
    )
    cache_default_expiry: str = Field(
        default="1h",
        description="Default entry lifetime as a duration string (e.g. '90s', '30m', '1h30m')",
    )
    cache_dir: str = Field(
        default="./cache/store",
        description="Directory for the filesystem store",
    )
    cache_max_size_mb: int = Field(
        default=1024,
        ge=1,
        le=10240,
        description="Maximum filesystem store size in megabytes (default: 1024 = 1GB)",
    )
    cache_eviction_check_interval: int = Field(
        default=300,
        ge=0,
        le=3600,
        description="How often to check for LRU eviction in seconds (default: 300 = 5 min)",
    )

    # Memoization Configuration
    memoize_coalesce: bool = Field(
        default=False,
        description="Share one in-flight computation between concurrent misses on the same key",
    )

    # CORS Configuration
    cors_allowed_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # Logging
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    cache_log_level: str | None = Field(
        default=None, description="Level for cachelayer loggers only (defaults to log_level)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @field_validator("cache_default_expiry")
    @classmethod
    def _validate_expiry(cls, value: str) -> str:
        try:
            parse_duration(value)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return value

    @field_validator("cache_modules")
    @classmethod
    def _normalize_modules(cls, value: list[str]) -> list[str]:
        return [module.strip().lower() for module in value if module.strip()]
