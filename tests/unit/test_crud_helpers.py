"""
Tests for the generic CRUD helpers.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from cosmic_access_core.db import AccessToken, utc_now
from cosmic_access_core.exceptions import ErrorCode, RepositoryError
from cosmic_access_core.utils.crud_helpers import (
    count_records,
    create_record,
    delete_records,
    get_record,
    list_records,
)
from tests.fixtures.factories import AccessTokenFactory, ExpiredAccessTokenFactory


def token_data(token_id="API-20240315-0001", **overrides):
    data = {
        "token_id": token_id,
        "owner_reference": "owner-1",
        "display_name": "Reporting",
        "secret_hash": "a" * 64,
        "secret_prefix": "aaaaaaaa",
        "scopes": ["read:reports"],
        "expires_at": utc_now() + timedelta(days=1),
    }
    data.update(overrides)
    return data


class TestCreateRecord:
    """Test create_record."""

    def test_create(self, db_session):
        record = create_record(db_session, AccessToken, token_data())

        assert record.id is not None
        assert record.created_at is not None
        assert record.updated_at is not None
        assert db_session.query(AccessToken).count() == 1

    def test_duplicate_unique_value(self, db_session):
        create_record(db_session, AccessToken, token_data())

        with pytest.raises(RepositoryError) as exc_info:
            create_record(db_session, AccessToken, token_data(owner_reference="owner-2"))

        assert exc_info.value.error_code == ErrorCode.DUPLICATE
        assert exc_info.value.status_code == 409
        # Session is usable again after the rollback
        assert db_session.query(AccessToken).count() == 1

    def test_storage_fault(self, db_session, monkeypatch):
        def broken_commit():
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(db_session, "commit", broken_commit)

        with pytest.raises(RepositoryError) as exc_info:
            create_record(db_session, AccessToken, token_data())

        assert exc_info.value.error_code == ErrorCode.DATABASE_ERROR


class TestQueries:
    """Test get, list and count helpers."""

    def test_get_record_by_filters(self, db_session):
        stored = AccessTokenFactory(owner_reference="owner-1")

        assert get_record(db_session, AccessToken, {"token_id": stored.token_id}).id == stored.id
        assert get_record(db_session, AccessToken, {"token_id": "API-19990101-0001"}) is None

    def test_none_filters_are_ignored(self, db_session):
        AccessTokenFactory.create_batch(2)
        assert count_records(db_session, AccessToken, {"owner_reference": None}) == 2

    def test_criteria(self, db_session):
        AccessTokenFactory()
        ExpiredAccessTokenFactory()

        expired = list_records(
            db_session, AccessToken, criteria=[AccessToken.expires_at <= utc_now()]
        )

        assert len(expired) == 1

    def test_list_ordering_and_paging(self, db_session):
        now = utc_now()
        for offset in range(3):
            AccessTokenFactory(
                owner_reference="owner-1", created_at=now + timedelta(seconds=offset)
            )

        newest_first = list_records(db_session, AccessToken, {"owner_reference": "owner-1"})
        page = list_records(
            db_session,
            AccessToken,
            order_by=[AccessToken.created_at.asc()],
            limit=1,
            offset=1,
        )

        assert [r.created_at for r in newest_first] == sorted(
            (r.created_at for r in newest_first), reverse=True
        )
        assert page[0].id == newest_first[1].id


class TestDeleteRecords:
    """Test bulk delete."""

    def test_delete_matching(self, db_session):
        kept = AccessTokenFactory()
        ExpiredAccessTokenFactory.create_batch(2)

        deleted = delete_records(
            db_session, AccessToken, [AccessToken.expires_at <= utc_now()]
        )

        assert deleted == 2
        assert [r.id for r in db_session.query(AccessToken).all()] == [kept.id]

    def test_delete_nothing(self, db_session):
        AccessTokenFactory()
        assert delete_records(db_session, AccessToken, [AccessToken.token_id == "missing"]) == 0
