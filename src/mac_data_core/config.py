"""Configuration management for mac-data-core.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the MAC_DATA_ prefix (e.g., MAC_DATA_SEARCH_TTL_SECONDS).
    """

    model_config = SettingsConfigDict(
        env_prefix="MAC_DATA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Cache location
    cache_dir: Path = Field(
        default=Path.home() / ".mac-data-core",
        description="Directory holding the local SQLite cache files",
    )
    mail_cache_filename: str = Field(
        default="mail-cache.db",
        description="File name of the mail result cache inside cache_dir",
    )
    calendar_cache_filename: str = Field(
        default="calendar-cache.db",
        description="File name of the calendar result cache inside cache_dir",
    )

    # Cache TTL classes (seconds)
    folder_ttl_seconds: float = Field(
        default=60 * 60,
        description="Freshness window for mail folder listings",
    )
    message_list_ttl_seconds: float = Field(
        default=5 * 60,
        description="Freshness window for message list pages",
    )
    message_content_ttl_seconds: float = Field(
        default=24 * 60 * 60,
        description="Freshness window for individual message content",
    )
    search_ttl_seconds: float = Field(
        default=2 * 60,
        description="Freshness window for search result id lists",
    )
    calendar_list_ttl_seconds: float = Field(
        default=24 * 60 * 60,
        description="Freshness window for the calendar list",
    )
    recent_event_ttl_seconds: float = Field(
        default=15 * 60,
        description="Freshness window for events starting within recent_event_window_days",
    )
    old_event_ttl_seconds: float = Field(
        default=60 * 60,
        description="Freshness window for events further away from now",
    )
    recent_event_window_days: float = Field(
        default=7,
        description="Distance from now (days) under which an event counts as recent",
    )
    cache_retention_seconds: float = Field(
        default=24 * 60 * 60,
        description="Rows older than this are deleted by an explicit cleanup pass",
    )

    # Deduplication tunables
    fuzzy_similarity_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Minimum subject similarity for a fuzzy duplicate",
    )
    fuzzy_time_window_hours: float = Field(
        default=24,
        description="Maximum time distance between fuzzy duplicates",
    )
    fuzzy_bucket_minutes: int = Field(
        default=60,
        description="Width of the date bucket used in the fuzzy key",
    )
    fuzzy_subject_length: int = Field(
        default=50,
        description="Number of normalized subject characters used in the fuzzy key",
    )

    # Mail query defaults
    default_days_back: int = Field(
        default=2,
        description="Default number of days fetched from mail sources",
    )
    default_limit: int = Field(
        default=1000,
        description="Default maximum number of messages returned per query",
    )
    top_senders_limit: int = Field(
        default=20,
        description="Number of senders reported in mail statistics",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    @field_validator(
        "folder_ttl_seconds",
        "message_list_ttl_seconds",
        "message_content_ttl_seconds",
        "search_ttl_seconds",
        "calendar_list_ttl_seconds",
        "recent_event_ttl_seconds",
        "old_event_ttl_seconds",
        "cache_retention_seconds",
        "fuzzy_time_window_hours",
    )
    @classmethod
    def _positive_duration(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("durations must be positive")
        return v

    @field_validator("fuzzy_bucket_minutes", "fuzzy_subject_length")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @property
    def mail_cache_path(self) -> Path:
        return self.cache_dir / self.mail_cache_filename

    @property
    def calendar_cache_path(self) -> Path:
        return self.cache_dir / self.calendar_cache_filename


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
