"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from operatorkit.governance.entitlements.models import QuotaPolicy

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", alias="OPERATORKIT_LOG_LEVEL", description="Root log level")
    format: str = Field(
        default="detailed", alias="OPERATORKIT_LOG_FORMAT", description="Log format (simple, detailed, json)"
    )
    file_dir: str = Field(default="logs", alias="OPERATORKIT_LOG_FILE_DIR", description="Directory for log files")
    enable_file: bool = Field(
        default=False, alias="OPERATORKIT_ENABLE_FILE_LOGGING", description="Write logs to a file as well"
    )

    model_config = {"populate_by_name": True}


class QuotaConfig(BaseModel):
    """Free-tier quota configuration."""

    free_executions_per_week: int = Field(
        default=25, alias="OPERATORKIT_FREE_EXECUTIONS_PER_WEEK", description="Weekly execution limit for free tier"
    )
    free_memory_items: int = Field(
        default=10, alias="OPERATORKIT_FREE_MEMORY_ITEMS", description="Stored memory item limit for free tier"
    )
    week_starts_on: int = Field(
        default=0,
        alias="OPERATORKIT_WEEK_STARTS_ON",
        description="Weekday (0=Monday .. 6=Sunday, UTC) the weekly quota window resets on",
    )
    fail_closed_unknown_kinds: bool = Field(
        default=False,
        alias="OPERATORKIT_QUOTA_FAIL_CLOSED",
        description="Deny actions whose kind the quota gate does not recognise",
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # =====================================================================
    # Logging
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="OPERATORKIT_LOG_LEVEL",
    )
    log_format: str = Field(default="detailed", alias="OPERATORKIT_LOG_FORMAT")
    log_file_dir: str = Field(default="logs", alias="OPERATORKIT_LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, alias="OPERATORKIT_ENABLE_FILE_LOGGING")

    # =====================================================================
    # Persistence
    # =====================================================================
    storage_backend: Literal["memory", "sql"] = Field(
        default="memory",
        description="Where proposals, sessions and evidence are stored",
        alias="OPERATORKIT_STORAGE_BACKEND",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./operatorkit.db",
        description="Async SQLAlchemy connection URL used when storage_backend is 'sql'",
        alias="OPERATORKIT_DATABASE_URL",
    )

    # =====================================================================
    # Quotas
    # =====================================================================
    free_executions_per_week: int = Field(default=25, alias="OPERATORKIT_FREE_EXECUTIONS_PER_WEEK")
    free_memory_items: int = Field(default=10, alias="OPERATORKIT_FREE_MEMORY_ITEMS")
    week_starts_on: int = Field(default=0, ge=0, le=6, alias="OPERATORKIT_WEEK_STARTS_ON")
    fail_closed_unknown_kinds: bool = Field(default=False, alias="OPERATORKIT_QUOTA_FAIL_CLOSED")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def quota(self) -> QuotaConfig:
        """Get quota configuration from environment variables."""
        return QuotaConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def quota_policy(self) -> QuotaPolicy:
        """Build the ``QuotaPolicy`` consumed by ``QuotaGate``."""
        q = self.quota
        return QuotaPolicy(
            free_executions_per_week=q.free_executions_per_week,
            free_memory_items=q.free_memory_items,
            week_starts_on=q.week_starts_on,
            fail_closed_unknown_kinds=q.fail_closed_unknown_kinds,
        )


settings = Settings()
