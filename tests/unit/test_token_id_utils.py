"""
Unit tests for token id generation.

Covers the pure formatter and the database-backed reservation that keeps ids
unique under concurrent issuing.
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from cosmic_access_core.db import TokenDaySequence
from cosmic_access_core.utils.token_id_utils import (
    day_key,
    format_token_id,
    generate_token_id,
    latest_token_id_for_day,
    parse_sequence,
    reserve_token_id,
)
from tests.fixtures.factories import AccessTokenFactory

ISSUE_DAY = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class TestFormatTokenId:
    """Test the API-YYYYMMDD-NNNN format."""

    @pytest.mark.parametrize(
        "sequence,expected",
        [
            (1, "API-20240101-0001"),
            (42, "API-20240101-0042"),
            (9999, "API-20240101-9999"),
            (10000, "API-20240101-10000"),
        ],
    )
    def test_sequence_is_zero_padded(self, sequence, expected):
        assert format_token_id(ISSUE_DAY, sequence) == expected

    def test_date_is_taken_in_utc(self):
        """23:30 at UTC-05:00 is already the next day in UTC."""
        local = datetime(2024, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert day_key(local) == "20240102"
        assert format_token_id(local, 1) == "API-20240102-0001"

    def test_naive_datetime_is_read_as_utc(self):
        assert day_key(datetime(2024, 1, 1, 23, 59)) == "20240101"


class TestGenerateTokenId:
    """Test the pure next-id calculation."""

    def test_first_id_of_the_day(self):
        assert generate_token_id(ISSUE_DAY, None) == "API-20240101-0001"

    def test_increments_latest_sequence(self):
        assert generate_token_id(ISSUE_DAY, "API-20240101-0042") == "API-20240101-0043"

    @pytest.mark.parametrize("latest", ["", "garbage", "API-20240101-", "API-2024-0001"])
    def test_unparsable_latest_starts_at_one(self, latest):
        assert generate_token_id(ISSUE_DAY, latest) == "API-20240101-0001"

    def test_parse_sequence(self):
        assert parse_sequence("API-20240101-0007") == 7
        assert parse_sequence("API-20240101-10000") == 10000
        assert parse_sequence(None) is None


class TestReserveTokenId:
    """Test the atomic per-day counter."""

    def test_sequential_reservations(self, db_session):
        ids = []
        for _ in range(3):
            ids.append(reserve_token_id(db_session, ISSUE_DAY))
            db_session.commit()

        assert ids == ["API-20240101-0001", "API-20240101-0002", "API-20240101-0003"]

    def test_counter_is_per_day(self, db_session):
        first = reserve_token_id(db_session, ISSUE_DAY)
        next_day = reserve_token_id(db_session, ISSUE_DAY + timedelta(days=1))
        db_session.commit()

        assert first == "API-20240101-0001"
        assert next_day == "API-20240102-0001"
        assert db_session.get(TokenDaySequence, "20240101").last_sequence == 1
        assert db_session.get(TokenDaySequence, "20240102").last_sequence == 1

    def test_seeds_from_existing_tokens(self, db_session):
        """Tokens stored before the counter existed are never reissued."""
        AccessTokenFactory(token_id="API-20240101-0005")
        AccessTokenFactory(token_id="API-20240101-0003")

        assert reserve_token_id(db_session, ISSUE_DAY) == "API-20240101-0006"

    def test_skips_past_ids_stored_behind_the_counter(self, db_session):
        reserve_token_id(db_session, ISSUE_DAY)
        db_session.commit()
        AccessTokenFactory(token_id="API-20240101-0009")

        assert reserve_token_id(db_session, ISSUE_DAY) == "API-20240101-0010"

    def test_rollback_releases_reservation(self, db_session):
        reserve_token_id(db_session, ISSUE_DAY)
        db_session.rollback()

        assert reserve_token_id(db_session, ISSUE_DAY) == "API-20240101-0001"

    def test_latest_orders_numerically(self, db_session):
        AccessTokenFactory(token_id="API-20240101-9999")
        AccessTokenFactory(token_id="API-20240101-10000")
        AccessTokenFactory(token_id="API-20240102-0001")

        assert latest_token_id_for_day(db_session, ISSUE_DAY) == "API-20240101-10000"
