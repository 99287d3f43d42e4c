"""
Generic CRUD helpers shared by the access token service.

Equality filters come in as a dict keyed by column name; anything richer
(ranges, NULL checks, OR clauses) is passed as SQLAlchemy criteria.
"""

from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..db.db_base import utc_now
from ..exceptions import ErrorCode, RepositoryError, duplicate
from ..utils.logger import get_logger

T = TypeVar("T")


def _filtered_query(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]],
    criteria: Sequence[Any],
) -> Query:
    query = session.query(model_class)

    if filters:
        for key, value in filters.items():
            if hasattr(model_class, key) and value is not None:
                query = query.filter(getattr(model_class, key) == value)

    for criterion in criteria:
        query = query.filter(criterion)

    return query


def create_record(session: Session, model_class: Type[T], data: Dict[str, Any]) -> T:
    """
    Generic create operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        data: Column values

    Returns:
        Created record instance

    Raises:
        RepositoryError: DUPLICATE on a unique constraint violation,
            DATABASE_ERROR for any other storage fault
    """
    logger = get_logger()

    now = utc_now()
    if hasattr(model_class, "created_at"):
        data.setdefault("created_at", now)
    if hasattr(model_class, "updated_at"):
        data.setdefault("updated_at", now)

    try:
        record = model_class(**data)
        session.add(record)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise duplicate(model_class.__name__, cause=e)
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to create {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
        )

    logger.info(
        f"Created {model_class.__name__}",
        extra={"model": model_class.__name__, "record_id": getattr(record, "id", None)},
    )
    return record


def get_record(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    criteria: Sequence[Any] = (),
) -> Optional[T]:
    """Return the first record matching the filters, or None."""
    return _filtered_query(session, model_class, filters, criteria).first()


def list_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    criteria: Sequence[Any] = (),
    order_by: Sequence[Any] = (),
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> List[T]:
    """
    Generic list operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        filters: Optional equality filters
        criteria: Optional SQLAlchemy filter expressions
        order_by: Order by clauses; newest created first when empty
        limit: Optional limit
        offset: Optional offset

    Returns:
        List of record instances
    """
    query = _filtered_query(session, model_class, filters, criteria)

    if order_by:
        query = query.order_by(*order_by)
    elif hasattr(model_class, "created_at"):
        query = query.order_by(model_class.created_at.desc())  # type: ignore[attr-defined]

    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)

    return query.all()


def count_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    criteria: Sequence[Any] = (),
) -> int:
    """Count records matching the filters."""
    return _filtered_query(session, model_class, filters, criteria).count()


def delete_records(session: Session, model_class: Type[T], criteria: Sequence[Any]) -> int:
    """
    Bulk delete every record matching the criteria in one statement.

    Returns:
        Number of rows deleted

    Raises:
        RepositoryError: If the delete fails
    """
    logger = get_logger()

    try:
        result = session.execute(
            delete(model_class)
            .where(*criteria)
            .execution_options(synchronize_session=False)
        )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to delete {model_class.__name__} records: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
        )

    logger.info(
        f"Deleted {model_class.__name__} records",
        extra={"model": model_class.__name__, "deleted_count": result.rowcount},
    )
    return result.rowcount
