from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker

from ..config import AppConfig, get_config
from ..exceptions import ErrorCode, ServiceError, ValidationError
from ..utils.logger import get_logger

# Base class for all SQLAlchemy models
Base: Any = declarative_base()


class DatabaseConfig(BaseModel):
    db_type: str = "postgres"
    database: str
    host: Optional[str] = None
    port: str = "5432"
    username: Optional[str] = None
    password: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False
    development_mode: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def get_connection_string(self) -> str:
        if self.db_type.lower() == "postgres":
            if not all([self.host, self.database, self.username, self.password]):
                raise ValidationError(
                    "Missing required Postgres configuration parameters",
                    error_code=ErrorCode.MISSING_REQUIRED,
                    field="database_config",
                    value={"host": self.host, "database": self.database, "username": self.username},
                )
            return (
                f"postgresql://{self.username}:{self.password}@"
                f"{self.host}:{self.port}/{self.database}"
            )
        elif self.db_type.lower() == "sqlite":
            return f"sqlite:///{self.database}"
        raise ValidationError(
            f"Unsupported database type: {self.db_type}",
            error_code=ErrorCode.INVALID_FORMAT,
            field="db_type",
            value=self.db_type,
        )

    def __repr__(self) -> str:
        """String representation with masked password."""
        return (
            f"DatabaseConfig("
            f"db_type='{self.db_type}', "
            f"host='{self.host}', "
            f"port='{self.port}', "
            f"database='{self.database}', "
            f"username='{self.username}', "
            f"password='***')"
        )


class DatabaseManager:
    """Database connection manager that uses a Pydantic DatabaseConfig."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._create_engine()
        self.session_factory = sessionmaker(bind=self.engine)
        self.scoped_session = scoped_session(self.session_factory)

    def _create_engine(self):
        connection_string = self.config.get_connection_string()
        if self.config.db_type.lower() == "sqlite":
            return create_engine(
                connection_string,
                echo=self.config.echo,
                connect_args={"check_same_thread": False},
            )
        return create_engine(
            connection_string,
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
        )

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        if self.config.development_mode:
            Base.metadata.drop_all(self.engine)
        else:
            raise ServiceError(
                "Cannot drop tables: not in development mode",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                operation="drop_tables",
                development_mode=self.config.development_mode,
            )

    def get_session(self) -> Session:
        return self.scoped_session()

    def close_session(self, session: Optional[Session] = None) -> None:
        if session:
            session.close()
        else:
            self.scoped_session.remove()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def get_app_database_config(app_config: Optional[AppConfig] = None) -> DatabaseConfig:
    """
    Build a DatabaseConfig from the application's DATABASE_URL setting.

    SQLite URLs are treated as development databases; anything else is
    connected to as Postgres with the configured pool settings.
    """
    app_config = app_config or get_config()
    settings = app_config.database
    url = make_url(settings.connection_string)

    if url.get_backend_name() == "sqlite":
        return DatabaseConfig(
            db_type="sqlite",
            database=url.database or ":memory:",
            echo=settings.echo,
            development_mode=True,
        )
    return DatabaseConfig(
        db_type="postgres",
        host=url.host,
        port=str(url.port or 5432),
        database=url.database or "",
        username=url.username,
        password=url.password,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        echo=settings.echo,
        development_mode=app_config.environment == "development",
    )


def import_all_models():
    """Import all models so they are registered with SQLAlchemy metadata."""
    from sqlalchemy.orm import configure_mappers

    from .db_access_token_models import AccessToken, TokenDaySequence  # noqa

    configure_mappers()


_db_manager: Optional[DatabaseManager] = None


def initialize_db(config: DatabaseConfig) -> DatabaseManager:
    """
    Create the global database manager and its tables.

    Args:
        config: Connection configuration

    Returns:
        The initialized DatabaseManager
    """
    global _db_manager
    get_logger().info(
        "Initializing database", extra={"db_type": config.db_type, "database": config.database}
    )
    import_all_models()
    _db_manager = DatabaseManager(config)
    _db_manager.create_tables()
    return _db_manager


def get_db_manager() -> DatabaseManager:
    """
    Get the global database manager instance.

    Raises:
        ServiceError: If no database manager has been initialized
    """
    if _db_manager is None:
        raise ServiceError(
            "Database manager not initialized. Call initialize_db() first.",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    """Set (or clear, with None) the global database manager instance."""
    global _db_manager
    _db_manager = manager
