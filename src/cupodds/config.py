"""Configuration management for cupodds."""

from enum import Enum
from pathlib import Path

from platformdirs import user_cache_dir
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Log levels accepted by :func:`cupodds.betting.logging.configure_logging`."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class ConfigurationError(ValueError):
    """Raised when cupodds configuration validation fails."""


class CupOddsConfig(BaseSettings):
    """Configuration settings for cupodds."""

    # Durable cache settings
    cache_path: Path = Field(
        default_factory=lambda: Path(user_cache_dir("cupodds")) / "odds_cache.sqlite3",
        description="SQLite database holding cached odds",
        alias="CUPODDS_CACHE_PATH",
    )

    cache_ttl_days: float = Field(
        default=7.0,
        description="Days before a cached distribution expires",
        alias="CUPODDS_CACHE_TTL_DAYS",
    )

    read_timeout: float = Field(
        default=0.2,
        description="Seconds to wait for a cache lookup before treating it as a miss",
        alias="CUPODDS_READ_TIMEOUT",
    )

    write_timeout: float = Field(
        default=0.5,
        description="Seconds to wait for a cache write before abandoning it",
        alias="CUPODDS_WRITE_TIMEOUT",
    )

    sweep_interval: float = Field(
        default=3600.0,
        description="Seconds between expired-row sweeps when the sweeper runs",
        alias="CUPODDS_SWEEP_INTERVAL",
    )

    # In-process tier
    memory_cache_size: int = Field(
        default=512,
        description="Maximum entries kept in the in-process cache tier",
        alias="CUPODDS_MEMORY_CACHE_SIZE",
    )

    # Ratings
    default_rating: float = Field(
        default=1500.0,
        description="Rating assumed for group teams missing from the rankings table",
        alias="CUPODDS_DEFAULT_RATING",
    )

    rankings_path: Path | None = Field(
        default=None,
        description="Custom rankings JSON file",
        alias="CUPODDS_RANKINGS_PATH",
    )

    fuzzy_matching: bool = Field(
        default=False,
        description="Resolve near-miss team names with fuzzy matching",
        alias="CUPODDS_FUZZY_MATCHING",
    )

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Log level for the command line interface",
        alias="CUPODDS_LOG_LEVEL",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global configuration instance
config = CupOddsConfig()


def get_config() -> CupOddsConfig:
    """Get the current configuration."""
    return config


def update_config(**kwargs) -> None:
    """Update configuration settings."""
    global config
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ValueError(f"Unknown configuration option: {key}")


def reset_config() -> None:
    """Reset configuration to defaults."""
    global config
    config = CupOddsConfig()


def validate_config(settings: CupOddsConfig | None = None) -> list[str]:
    """Validate configuration values.

    Returns a list of warnings; raises :class:`ConfigurationError` when a
    setting cannot be used at all.
    """

    settings = settings or get_config()
    errors: list[str] = []
    warnings: list[str] = []

    if settings.cache_ttl_days <= 0:
        errors.append("cache_ttl_days must be greater than zero")
    if settings.read_timeout <= 0:
        errors.append("read_timeout must be greater than zero")
    if settings.write_timeout <= 0:
        errors.append("write_timeout must be greater than zero")
    elif settings.write_timeout < settings.read_timeout:
        warnings.append("write_timeout is shorter than read_timeout; writes may be dropped")
    if settings.sweep_interval < 0:
        errors.append("sweep_interval must be non-negative")
    if settings.memory_cache_size < 0:
        errors.append("memory_cache_size must be non-negative")
    elif settings.memory_cache_size == 0:
        warnings.append("memory_cache_size is zero; the in-process tier is disabled")
    if settings.default_rating <= 0:
        errors.append("default_rating must be greater than zero")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{bullet_list}")

    return warnings
