"""
Test fixtures for the access token core.

This module provides shared test fixtures including database setup,
model factories, and common test utilities.
"""

from datetime import UTC, datetime

import pytest
from sqlalchemy.orm import Session

from cosmic_access_core.config import reset_config
from cosmic_access_core.context.actor_context import ActorContext
from cosmic_access_core.db import DatabaseConfig, DatabaseManager, import_all_models
from cosmic_access_core.db.db_config import Base, initialize_db
from cosmic_access_core.exceptions import clear_correlation_id
from cosmic_access_core.services.access_token_service import AccessTokenService
from tests.fixtures.factories import configure_factories

# A fixed instant in the middle of a minute, hour and day
FIXED_NOW = datetime(2024, 3, 15, 10, 30, 15, tzinfo=UTC)


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test so each one
    starts from an empty database.
    """
    session = db_manager.get_session()
    Base.metadata.create_all(db_manager.engine)
    configure_factories(session)

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def clean_context():
    """Start every test with default config and no actor or correlation id."""
    reset_config()
    ActorContext.clear_current_actor()
    clear_correlation_id()
    yield
    reset_config()
    ActorContext.clear_current_actor()
    clear_correlation_id()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture(scope="function")
def token_service(db_session) -> AccessTokenService:
    """Access token service with test session."""
    return AccessTokenService(session=db_session)
