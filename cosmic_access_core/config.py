"""
Centralized configuration management for the Cosmic access token core.

This module provides a unified configuration system with support for:
- Environment variables
- Feature flags
- Token policy defaults
- Validation using Pydantic
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, Limits, LogLevel, TokenFormat


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.DATABASE_URL.value, "sqlite:///./cosmic_access.db"
        ),
        description="Database connection string",
    )
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL statements")


class QueueConfig(BaseModel):
    """Queue configuration for shipping structured logs to Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default="logs-queue", description="Logs queue name")
    batch_size: int = Field(default=10, ge=1, description="Log records buffered per send")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class FeatureFlags(BaseModel):
    """Feature flags for controlling runtime behavior."""

    enable_logs_queue: bool = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.ENABLE_LOGS_QUEUE.value, "false"
        ).lower()
        == "true",
        description="Ship structured logs to the Azure logs queue",
    )
    enable_operation_logging: bool = Field(
        default=True, description="Log ENTER/EXIT records around service operations"
    )


class TokenPolicyConfig(BaseModel):
    """Defaults applied when issuing and tracking access tokens."""

    token_marker: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.TOKEN_MARKER.value, TokenFormat.MARKER
        ),
        description="Literal marker prepended to issued plaintext credentials",
    )
    default_requests_per_minute: int = Field(
        default=Limits.DEFAULT_REQUESTS_PER_MINUTE, ge=1, description="Per-minute threshold"
    )
    default_requests_per_hour: int = Field(
        default=Limits.DEFAULT_REQUESTS_PER_HOUR, ge=1, description="Per-hour threshold"
    )
    default_requests_per_day: int = Field(
        default=Limits.DEFAULT_REQUESTS_PER_DAY, ge=1, description="Per-day threshold"
    )
    token_id_max_attempts: int = Field(
        default=Limits.TOKEN_ID_MAX_ATTEMPTS,
        ge=1,
        description="Insert attempts before giving up on a token_id conflict",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.DEBUG.value, "false").lower()
        == "true",
        description="Debug mode",
    )

    # Sub-configurations
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    features: FeatureFlags = Field(default_factory=FeatureFlags, description="Feature flags")
    tokens: TokenPolicyConfig = Field(
        default_factory=TokenPolicyConfig, description="Access token policy"
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
