"""
Human-readable token identifiers of the form API-YYYYMMDD-NNNN.

The date part is the UTC issue date and NNNN a per-day sequence starting at
0001. Past 9999 the sequence simply grows wider.
"""

import re
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, insert, select, update
from sqlalchemy.orm import Session

from ..constants import TokenFormat
from ..db.db_access_token_models import AccessToken, TokenDaySequence
from ..db.db_base import ensure_utc
from ..utils.logger import get_logger

TOKEN_ID_PATTERN = re.compile(rf"^{TokenFormat.ID_PREFIX}-(\d{{8}})-(\d+)$")


def day_key(now: datetime) -> str:
    return ensure_utc(now).strftime("%Y%m%d")


def format_token_id(now: datetime, sequence: int) -> str:
    """
    Format a token id for the UTC date of `now`.

    >>> format_token_id(datetime(2024, 1, 1), 7)
    'API-20240101-0007'
    """
    return f"{TokenFormat.ID_PREFIX}-{day_key(now)}-{sequence:0{TokenFormat.SEQUENCE_WIDTH}d}"


def parse_sequence(token_id: Optional[str]) -> Optional[int]:
    """Return the sequence part of a token id, or None if it doesn't parse."""
    if not token_id:
        return None
    match = TOKEN_ID_PATTERN.match(token_id)
    if not match:
        return None
    return int(match.group(2))


def generate_token_id(now: datetime, latest_token_id: Optional[str] = None) -> str:
    """
    Next token id given the latest id already issued for the same UTC day.

    A missing or unparsable latest id starts the day at 0001.
    """
    sequence = parse_sequence(latest_token_id)
    return format_token_id(now, 1 if sequence is None else sequence + 1)


def latest_token_id_for_day(session: Session, now: datetime) -> Optional[str]:
    """Greatest token id issued on the UTC day of `now`, ordered numerically."""
    pattern = f"{TokenFormat.ID_PREFIX}-{day_key(now)}-%"
    return session.execute(
        select(AccessToken.token_id)
        .where(AccessToken.token_id.like(pattern))
        .order_by(func.length(AccessToken.token_id).desc(), AccessToken.token_id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _seed_day_counter(session: Session, day: str, seed: int) -> None:
    """Insert the day's counter row unless it already exists."""
    dialect = session.get_bind().dialect.name
    values = {"day": day, "last_sequence": seed}

    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        session.execute(
            pg_insert(TokenDaySequence).values(**values).on_conflict_do_nothing(index_elements=["day"])
        )
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        session.execute(
            sqlite_insert(TokenDaySequence)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["day"])
        )
    elif session.get(TokenDaySequence, day) is None:
        session.execute(insert(TokenDaySequence).values(**values))


def reserve_token_id(session: Session, now: datetime) -> str:
    """
    Atomically claim the next token id for the UTC day of `now`.

    The day's counter row is seeded from the ids already stored, then bumped
    with a single UPDATE so concurrent issuers serialize on the row lock. The
    caller owns the transaction; the reservation is only durable once it
    commits.
    """
    day = day_key(now)
    seed = parse_sequence(latest_token_id_for_day(session, now)) or 0

    _seed_day_counter(session, day, seed)

    # Never hand out a number at or below one already stored
    session.execute(
        update(TokenDaySequence)
        .where(TokenDaySequence.day == day)
        .values(
            last_sequence=case(
                (TokenDaySequence.last_sequence < seed, seed),
                else_=TokenDaySequence.last_sequence,
            )
            + 1
        )
        .execution_options(synchronize_session=False)
    )
    sequence = session.execute(
        select(TokenDaySequence.last_sequence).where(TokenDaySequence.day == day)
    ).scalar_one()

    token_id = format_token_id(now, sequence)
    get_logger().debug("Reserved token id", extra={"token_id": token_id, "day": day})
    return token_id
