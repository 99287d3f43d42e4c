"""
Pydantic schemas for API access tokens.

AccessTokenCreate validates issue requests; AccessTokenRead is the value
object every service operation hands back, so callers never hold a live ORM
row. The secret hash is deliberately absent from every read schema.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import AuthStatus, Limits, RateWindow, TokenFormat, TokenScope
from ..db.db_base import ensure_utc, utc_now
from ..exceptions import AuthenticationFailedError, BaseError, RateLimitExceededError

if TYPE_CHECKING:
    from ..db.db_access_token_models import AccessToken


class RateLimits(BaseModel):
    """Per-window request thresholds."""

    requests_per_minute: int = Field(default=Limits.DEFAULT_REQUESTS_PER_MINUTE, ge=1)
    requests_per_hour: int = Field(default=Limits.DEFAULT_REQUESTS_PER_HOUR, ge=1)
    requests_per_day: int = Field(default=Limits.DEFAULT_REQUESTS_PER_DAY, ge=1)


class Capabilities(BaseModel):
    read: bool = True
    write: bool = False
    delete: bool = False
    admin: bool = False


class IpRestriction(BaseModel):
    ip_address: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None


class DomainRestriction(BaseModel):
    domain: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class UsageStats(BaseModel):
    """Usage counters and the instant each window counter was last reset."""

    total_requests: int = 0
    last_used_at: Optional[datetime] = None
    requests_this_minute: int = 0
    requests_this_hour: int = 0
    requests_today: int = 0
    minute_reset_at: datetime
    hour_reset_at: datetime
    day_reset_at: datetime


class LastActivity(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    endpoint: Optional[str] = None
    method: Optional[str] = None
    timestamp: Optional[datetime] = None


class Revocation(BaseModel):
    revoked_at: datetime
    revoked_by: Optional[str] = None
    reason: Optional[str] = None


class SecurityFlags(BaseModel):
    """Stored with every token; nothing in this package reads or writes it."""

    is_suspicious: bool = False
    failed_attempts: int = 0
    last_failed_attempt: Optional[datetime] = None
    blocked_until: Optional[datetime] = None


class RequestInfo(BaseModel):
    """Metadata of the HTTP request an authenticated token is used for."""

    endpoint: Optional[str] = None
    method: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AccessTokenCreate(BaseModel):
    """Schema for issuing a new access token."""

    owner_reference: str = Field(
        min_length=1, max_length=TokenFormat.MAX_OWNER_REFERENCE_LENGTH
    )
    display_name: str = Field(min_length=1, max_length=TokenFormat.MAX_DISPLAY_NAME_LENGTH)
    expires_at: datetime
    scopes: List[TokenScope] = Field(default_factory=list)
    capabilities: Capabilities = Field(default_factory=Capabilities)
    rate_limits: Optional[RateLimits] = None
    ip_restrictions: List[IpRestriction] = Field(default_factory=list)
    domain_restrictions: List[DomainRestriction] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    @field_validator("expires_at")
    def normalize_expiry(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("scopes")
    def deduplicate_scopes(cls, v: List[TokenScope]) -> List[TokenScope]:
        return list(dict.fromkeys(v))


class AccessTokenRead(BaseModel):
    """Read view of a stored access token."""

    id: str
    token_id: str
    owner_reference: str
    display_name: str
    secret_prefix: str
    scopes: List[TokenScope]
    capabilities: Capabilities
    rate_limits: RateLimits
    usage: UsageStats
    ip_restrictions: List[IpRestriction] = Field(default_factory=list)
    domain_restrictions: List[DomainRestriction] = Field(default_factory=list)
    expires_at: datetime
    is_active: bool
    revocation: Optional[Revocation] = None
    last_activity: Optional[LastActivity] = None
    security_flags: SecurityFlags = Field(default_factory=SecurityFlags)
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    @property
    def is_revoked(self) -> bool:
        return self.revocation is not None

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """Active, not revoked, and expiring strictly after `now`."""
        now = ensure_utc(now) if now else utc_now()
        return self.is_active and not self.is_revoked and self.expires_at > now

    @classmethod
    def from_model(cls, token: "AccessToken") -> "AccessTokenRead":
        revocation = None
        if token.revoked_at is not None:
            revocation = Revocation(
                revoked_at=ensure_utc(token.revoked_at),
                revoked_by=token.revoked_by,
                reason=token.revoked_reason,
            )

        return cls(
            id=token.id,
            token_id=token.token_id,
            owner_reference=token.owner_reference,
            display_name=token.display_name,
            secret_prefix=token.secret_prefix,
            scopes=token.scopes or [],
            capabilities=Capabilities(
                read=token.can_read,
                write=token.can_write,
                delete=token.can_delete,
                admin=token.can_admin,
            ),
            rate_limits=RateLimits(
                requests_per_minute=token.requests_per_minute,
                requests_per_hour=token.requests_per_hour,
                requests_per_day=token.requests_per_day,
            ),
            usage=UsageStats(
                total_requests=token.total_requests,
                last_used_at=ensure_utc(token.last_used_at),
                requests_this_minute=token.requests_this_minute,
                requests_this_hour=token.requests_this_hour,
                requests_today=token.requests_today,
                minute_reset_at=ensure_utc(token.minute_reset_at),
                hour_reset_at=ensure_utc(token.hour_reset_at),
                day_reset_at=ensure_utc(token.day_reset_at),
            ),
            ip_restrictions=token.ip_restrictions or [],
            domain_restrictions=token.domain_restrictions or [],
            expires_at=ensure_utc(token.expires_at),
            is_active=token.is_active,
            revocation=revocation,
            last_activity=token.last_activity,
            security_flags=token.security_flags or {},
            metadata=token.token_metadata,
            created_at=ensure_utc(token.created_at),
            updated_at=ensure_utc(token.updated_at),
            created_by=token.created_by,
            updated_by=token.updated_by,
        )


class IssuedCredentials(BaseModel):
    """Freshly generated secret material. `plaintext` is kept out of repr."""

    prefix: str
    secret_hash: str
    plaintext: str = Field(repr=False)


class IssuedToken(BaseModel):
    """A stored token plus the one-time plaintext credential."""

    token: AccessTokenRead
    plaintext: str = Field(repr=False)


class RateLimitDecision(BaseModel):
    """Admission verdict for one request."""

    allowed: bool
    reason: Optional[str] = None
    window: Optional[RateWindow] = None
    usage: Optional[UsageStats] = None


class AuthenticationResult(BaseModel):
    """Typed outcome of authenticating a presented bearer credential."""

    status: AuthStatus
    token: Optional[AccessTokenRead] = None
    decision: Optional[RateLimitDecision] = None

    @property
    def authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED

    @property
    def reason(self) -> Optional[str]:
        if self.status == AuthStatus.INVALID_CREDENTIALS:
            return "invalid access token"
        if self.status == AuthStatus.RATE_LIMITED and self.decision:
            return self.decision.reason
        return None

    def to_error(self) -> Optional[BaseError]:
        """Build the exception an HTTP layer would raise, or None when authenticated."""
        if self.status == AuthStatus.INVALID_CREDENTIALS:
            return AuthenticationFailedError()
        if self.status == AuthStatus.RATE_LIMITED:
            window = self.decision.window.value if self.decision and self.decision.window else None
            return RateLimitExceededError(
                f"Rate limit exceeded: {self.reason}",
                window=window,
                token_id=self.token.token_id if self.token else None,
            )
        return None


class TokenStatistics(BaseModel):
    total_tokens: int
    active_tokens: int
    revoked_tokens: int
    expired_tokens: int
    owner_reference: Optional[str] = None
