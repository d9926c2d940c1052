"""Centralized configuration management using pydantic-settings.

Configuration is loaded from environment variables with sensible defaults.
All settings can be overridden via environment variables or a .env file.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Override via environment variables (prefixed with TB_) or a .env file.

    Examples:
        TB_SQLITE_PATH=/var/lib/tenant-books/books.db
        TB_LOG_LEVEL=DEBUG
        TB_AI_AUTO_APPLY_THRESHOLD=95
    """

    model_config = SettingsConfigDict(
        env_prefix="TB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Tenant Books"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False, description="Enable debug mode")

    # Database
    sqlite_path: Path = Field(
        default=Path("tenant_books.db"),
        description="SQLite database file path",
    )

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format: 'json' for production, 'console' for development",
    )
    log_file: Path | None = Field(default=None, description="Optional log file path")

    # API Server
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    api_reload: bool = Field(
        default=False, description="Enable auto-reload (development only)"
    )

    # AI routing
    ai_auto_apply_threshold: int = Field(
        default=90,
        ge=0,
        le=100,
        description="Minimum confidence for an AI decision to be applied without review",
    )
    ai_review_threshold: int = Field(
        default=60,
        ge=0,
        le=100,
        description="Minimum confidence for an AI decision to be queued for review",
    )
    ai_action_ttl_days: int = Field(default=14, ge=1)
    ai_model_version: str = "keyword-rules-v1"

    # Reconciliation
    reconciliation_suggestion_limit: int = Field(default=5, ge=1, le=50)
    reconciliation_date_window_days: int = Field(default=7, ge=0)

    # Feature Flags
    enable_audit_log: bool = True

    @field_validator("debug", mode="before")
    @classmethod
    def set_debug_from_environment(cls, v: bool, info) -> bool:
        """Auto-enable debug in development environment."""
        if info.data.get("environment") == Environment.DEVELOPMENT:
            return True
        return v

    @field_validator("ai_review_threshold", mode="after")
    @classmethod
    def review_below_auto_apply(cls, v: int, info) -> int:
        """Review threshold cannot sit above the auto-apply threshold."""
        auto_apply = info.data.get("ai_auto_apply_threshold")
        if auto_apply is not None and v > auto_apply:
            raise ValueError(
                f"ai_review_threshold ({v}) must not exceed "
                f"ai_auto_apply_threshold ({auto_apply})"
            )
        return v

    @property
    def effective_database_url(self) -> str:
        return f"sqlite:///{self.sqlite_path}"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
