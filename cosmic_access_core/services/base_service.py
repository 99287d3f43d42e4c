"""
Base service implementation with common functionality for all services.

Services own (or borrow) a SQLAlchemy session and translate low-level
failures into the package's exception hierarchy.
"""

import logging
from typing import NoReturn, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.db_config import get_db_manager
from ..exceptions import ErrorCode, RepositoryError
from ..utils.logger import get_logger


class SessionManagedService:
    """
    Service that owns and manages its own database session.

    Pass a session to share one with the caller (tests, request scopes);
    otherwise one is taken from the global DatabaseManager and closed with
    the service.
    """

    def __init__(self, session: Optional[Session] = None, logger: Optional[logging.Logger] = None):
        if session is not None:
            self.session = session
            self._owns_session = False
        else:
            self.session = get_db_manager().get_session()
            self._owns_session = True

        self.logger = logger or get_logger()

    def _handle_database_error(self, operation: str, exception: SQLAlchemyError, **context) -> NoReturn:
        """Roll back and re-raise a storage fault as a RepositoryError."""
        self.session.rollback()
        raise RepositoryError(
            f"Database error in {operation}: {str(exception)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=exception,
            operation=operation,
            **context,
        )

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.session.rollback()
        self.close()
