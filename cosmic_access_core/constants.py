"""
Constants and enums for the Cosmic access token core.

This module centralizes magic strings and fixed values used throughout
the package to ensure consistency and maintainability.
"""

from enum import Enum


class TokenScope(str, Enum):
    """Permission scopes an access token may carry."""

    READ_PROFILE = "read:profile"
    WRITE_PROFILE = "write:profile"
    READ_USERS = "read:users"
    WRITE_USERS = "write:users"
    READ_ENQUIRIES = "read:enquiries"
    WRITE_ENQUIRIES = "write:enquiries"
    READ_CALLS = "read:calls"
    WRITE_CALLS = "write:calls"
    READ_REPORTS = "read:reports"
    WRITE_REPORTS = "write:reports"
    READ_SETTINGS = "read:settings"
    WRITE_SETTINGS = "write:settings"
    ADMIN_ALL = "admin:all"


class Capability(str, Enum):
    """Coarse capabilities, each backed by its own boolean column."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"


class RateWindow(str, Enum):
    """Rate-limit windows, in evaluation order."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


class AuthStatus(str, Enum):
    """Outcome of authenticating a presented bearer credential."""

    AUTHENTICATED = "authenticated"
    INVALID_CREDENTIALS = "invalid_credentials"
    RATE_LIMITED = "rate_limited"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    DATABASE_URL = "DATABASE_URL"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    TOKEN_MARKER = "ACCESS_TOKEN_MARKER"
    DEBUG = "DEBUG"


# Window lengths in milliseconds, keyed by window
WINDOW_MILLISECONDS = {
    RateWindow.MINUTE: 60_000,
    RateWindow.HOUR: 3_600_000,
    RateWindow.DAY: 86_400_000,
}


class TokenFormat:
    """Fixed shape of identifiers and credentials."""

    ID_PREFIX = "API"
    SEQUENCE_WIDTH = 4
    MARKER = "cosmic_"
    SECRET_BYTES = 32
    LOOKUP_PREFIX_LENGTH = 8
    MAX_PREFIX_LENGTH = 10
    MAX_DISPLAY_NAME_LENGTH = 100
    MAX_OWNER_REFERENCE_LENGTH = 100


class Limits:
    """Default rate-limit thresholds and creation limits."""

    DEFAULT_REQUESTS_PER_MINUTE = 60
    DEFAULT_REQUESTS_PER_HOUR = 1000
    DEFAULT_REQUESTS_PER_DAY = 10000
    TOKEN_ID_MAX_ATTEMPTS = 3
