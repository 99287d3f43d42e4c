"""
SQLAlchemy models and database configuration.

This module provides a common entry point for all models.
"""

from .db_access_token_models import AccessToken, TokenDaySequence
from .db_base import JSON, TimestampMixin, UUIDMixin, ensure_utc, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    get_app_database_config,
    get_db_manager,
    import_all_models,
    initialize_db,
    set_db_manager,
)

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "ensure_utc",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "get_app_database_config",
    "get_db_manager",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "AccessToken",
    "TokenDaySequence",
]
