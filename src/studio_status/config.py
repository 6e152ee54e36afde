"""Status workflow configuration using pydantic-settings.

This module defines the StudioSettings class that reads configuration
from environment variables with the STUDIO_ prefix. Every field has a
default, so the workflow starts with an in-memory repository and logging
events when nothing is configured.
"""

import logging
from typing import List, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from studio_status.events.emitter import EventSinkType


class StudioSettings(BaseSettings):
    """Status workflow configuration from environment variables.

    All environment variables are prefixed with STUDIO_ (e.g.,
    STUDIO_DATABASE_URL). List values such as STUDIO_EVENT_SINKS are
    given as JSON, e.g. ``["logging", "metrics"]``.
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDIO_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Database Configuration
    # -------------------------------------------------------------------------
    # PostgreSQL connection string; the in-memory repository is used if unset
    database_url: Optional[str] = None

    db_min_pool_size: int = 2
    db_max_pool_size: int = 10

    # -------------------------------------------------------------------------
    # Dashboard Configuration
    # -------------------------------------------------------------------------
    # Number of entries in the recent status changes feed
    recent_changes_limit: int = 10

    # -------------------------------------------------------------------------
    # Observability Configuration
    # -------------------------------------------------------------------------
    event_sinks: List[EventSinkType] = [EventSinkType.LOGGING]

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate that database URL, when given, is a PostgreSQL URL."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "database_url must start with postgresql:// or postgres://"
            )
        return v

    @field_validator("db_min_pool_size", "db_max_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Validate that pool sizes are positive."""
        if v < 1:
            raise ValueError("pool sizes must be at least 1")
        return v

    @field_validator("recent_changes_limit")
    @classmethod
    def validate_recent_changes_limit(cls, v: int) -> int:
        """Validate that the feed size is positive."""
        if v < 1:
            raise ValueError("recent_changes_limit must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level is a standard logging level name."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"log_level must be a logging level name, got {v!r}")
        return level

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> "StudioSettings":
        """Validate that the minimum pool size does not exceed the maximum."""
        if self.db_min_pool_size > self.db_max_pool_size:
            raise ValueError("db_min_pool_size cannot exceed db_max_pool_size")
        return self


def get_settings() -> StudioSettings:
    """Create and return a StudioSettings instance.

    Raises:
        pydantic.ValidationError: If a configured value is invalid.
    """
    return StudioSettings()
