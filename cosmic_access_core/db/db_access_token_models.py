"""
API access token models.

Just the data structure. Issuing, verification, usage tracking and
lifecycle rules live in the utils and services layers.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now
from .db_config import Base


def _default_security_flags():
    return {
        "is_suspicious": False,
        "failed_attempts": 0,
        "last_failed_attempt": None,
        "blocked_until": None,
    }


class AccessToken(Base, UUIDMixin, TimestampMixin):
    """One issued API access credential and its usage counters."""

    __tablename__ = "api_access_tokens"

    # Identity
    token_id = Column(String(20), nullable=False, unique=True)
    owner_reference = Column(String(100), nullable=False, index=True)
    display_name = Column(String(100), nullable=False)

    # Credential (the raw secret is never stored)
    secret_hash = Column(String(64), nullable=False)
    secret_prefix = Column(String(10), nullable=False)

    # Authorization
    scopes = Column(JSON, nullable=False, default=list)
    can_read = Column(Boolean, nullable=False, default=True)
    can_write = Column(Boolean, nullable=False, default=False)
    can_delete = Column(Boolean, nullable=False, default=False)
    can_admin = Column(Boolean, nullable=False, default=False)

    # Rate limit thresholds
    requests_per_minute = Column(Integer, nullable=False, default=60)
    requests_per_hour = Column(Integer, nullable=False, default=1000)
    requests_per_day = Column(Integer, nullable=False, default=10000)

    # Usage counters
    total_requests = Column(Integer, nullable=False, default=0)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    requests_this_minute = Column(Integer, nullable=False, default=0)
    requests_this_hour = Column(Integer, nullable=False, default=0)
    requests_today = Column(Integer, nullable=False, default=0)
    minute_reset_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    hour_reset_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    day_reset_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Allow-lists, stored but not enforced here
    ip_restrictions = Column(JSON, nullable=False, default=list)
    domain_restrictions = Column(JSON, nullable=False, default=list)

    # Lifecycle
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by = Column(String(100), nullable=True)
    revoked_reason = Column(Text, nullable=True)

    # Snapshots and metadata
    last_activity = Column(JSON, nullable=True)
    security_flags = Column(JSON, nullable=False, default=_default_security_flags)
    token_metadata = Column("metadata", JSON, nullable=True)

    # Audit
    created_by = Column(String(100), nullable=True)
    updated_by = Column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_api_access_token_lookup", "secret_prefix", "secret_hash"),
        Index("ix_api_access_token_owner_created", "owner_reference", "created_at"),
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


class TokenDaySequence(Base):
    """Per-day counter backing the sequential part of token ids."""

    __tablename__ = "api_access_token_sequences"

    day = Column(String(8), primary_key=True)  # YYYYMMDD, UTC
    last_sequence = Column(Integer, nullable=False, default=0)
