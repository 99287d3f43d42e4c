"""
Service for issuing, verifying, metering and retiring API access tokens.

Every public method returns pydantic read models, never ORM rows. Methods
that take a presented credential redact it from the operation log.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import DateTime, case, literal, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import AppConfig, TokenPolicyConfig, get_config
from ..constants import AuthStatus, Capability, RateWindow, TokenFormat, TokenScope
from ..context.actor_context import ActorContext
from ..context.operation_context import operation
from ..db.db_access_token_models import AccessToken
from ..db.db_base import ensure_utc, utc_now
from ..exceptions import (
    ErrorCode,
    RepositoryError,
    ValidationError,
    not_found,
    permission_denied,
    validation_failed,
)
from ..schemas.access_token_schemas import (
    AccessTokenCreate,
    AccessTokenRead,
    AuthenticationResult,
    IssuedCredentials,
    IssuedToken,
    LastActivity,
    RateLimitDecision,
    RateLimits,
    RequestInfo,
    TokenStatistics,
)
from ..utils.credential_utils import credential_matches as presented_matches_hash
from ..utils.credential_utils import (
    hash_secret,
    issue_credentials,
    lookup_prefix,
    secrets_match,
    strip_token_marker,
)
from ..utils.crud_helpers import (
    count_records,
    create_record,
    delete_records,
    get_record,
    list_records,
)
from ..utils.rate_limit_utils import current_counts, evaluate_rate_limit, window_start
from ..utils.token_id_utils import reserve_token_id
from .base_service import SessionManagedService

TokenRef = Union[str, AccessTokenRead]

# Counter column and reset column per window
_WINDOW_COLUMNS = {
    RateWindow.MINUTE: ("requests_this_minute", "minute_reset_at"),
    RateWindow.HOUR: ("requests_this_hour", "hour_reset_at"),
    RateWindow.DAY: ("requests_today", "day_reset_at"),
}


class AccessTokenService(SessionManagedService):
    """
    Access token operations for the CRM's inbound API.

    Rate limiting uses epoch-aligned fixed windows of one minute, one hour and
    one day. Each request is recorded first and then admitted against the
    counts it found on arrival, so rejected requests still count.
    """

    def __init__(self, session: Optional[Session] = None, config: Optional[AppConfig] = None):
        super().__init__(session)
        self.config = config or get_config()

    @property
    def policy(self) -> TokenPolicyConfig:
        return self.config.tokens

    @staticmethod
    def _now(now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now else utc_now()

    @staticmethod
    def _token_key(token: TokenRef) -> str:
        return token.token_id if isinstance(token, AccessTokenRead) else token

    def _get_model(self, token_id: str) -> AccessToken:
        model = get_record(self.session, AccessToken, {"token_id": token_id}) if token_id else None
        if model is None:
            raise not_found("AccessToken", token_id=token_id)
        return model

    def _commit(self, operation_name: str, **context) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self._handle_database_error(operation_name, e, **context)

    # ==================== CREATION ====================

    @staticmethod
    def _validate_create(data: Union[AccessTokenCreate, Dict[str, Any]]) -> AccessTokenCreate:
        if isinstance(data, AccessTokenCreate):
            return data
        try:
            return AccessTokenCreate.model_validate(data)
        except PydanticValidationError as e:
            errors = [
                {
                    "field": ".".join(str(part) for part in err["loc"]),
                    "message": err["msg"],
                    "type": err["type"],
                }
                for err in e.errors()
            ]
            raise ValidationError(
                "Invalid access token request",
                field=errors[0]["field"] if errors else None,
                cause=e,
                errors=errors,
            )

    def _build_record(
        self,
        token_id: str,
        request: AccessTokenCreate,
        credentials: IssuedCredentials,
        actor_id: Optional[str],
        now: datetime,
    ) -> Dict[str, Any]:
        rate_limits = request.rate_limits or RateLimits(
            requests_per_minute=self.policy.default_requests_per_minute,
            requests_per_hour=self.policy.default_requests_per_hour,
            requests_per_day=self.policy.default_requests_per_day,
        )
        return {
            "token_id": token_id,
            "owner_reference": request.owner_reference,
            "display_name": request.display_name,
            "secret_hash": credentials.secret_hash,
            "secret_prefix": credentials.prefix,
            "scopes": [scope.value for scope in request.scopes],
            "can_read": request.capabilities.read,
            "can_write": request.capabilities.write,
            "can_delete": request.capabilities.delete,
            "can_admin": request.capabilities.admin,
            **rate_limits.model_dump(),
            "minute_reset_at": now,
            "hour_reset_at": now,
            "day_reset_at": now,
            "ip_restrictions": [r.model_dump() for r in request.ip_restrictions],
            "domain_restrictions": [r.model_dump() for r in request.domain_restrictions],
            "expires_at": request.expires_at,
            "is_active": True,
            "token_metadata": request.metadata,
            "created_by": actor_id,
            "updated_by": actor_id,
            "created_at": now,
            "updated_at": now,
        }

    @operation()
    def create_token(
        self,
        data: Union[AccessTokenCreate, Dict[str, Any]],
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> IssuedToken:
        """
        Issue a new access token.

        Args:
            data: AccessTokenCreate or an equivalent dict
            actor_id: Acting user; defaults to the current actor context
            now: Issue instant; defaults to the current UTC time

        Returns:
            IssuedToken holding the stored token and the one-time plaintext

        Raises:
            ValidationError: If the request is invalid; `errors` lists each field
            RepositoryError: DUPLICATE if no free token id was found within
                the configured attempts, DATABASE_ERROR on storage faults
        """
        request = self._validate_create(data)
        now = self._now(now)
        actor_id = ActorContext.resolve(actor_id)

        credentials = issue_credentials(self.policy.token_marker)
        if len(credentials.prefix) > TokenFormat.MAX_PREFIX_LENGTH:
            raise validation_failed(
                "secret_prefix",
                len(credentials.prefix),
                f"must be at most {TokenFormat.MAX_PREFIX_LENGTH} characters",
            )

        max_attempts = self.policy.token_id_max_attempts
        model = None
        for attempt in range(1, max_attempts + 1):
            try:
                token_id = reserve_token_id(self.session, now)
            except SQLAlchemyError as e:
                self._handle_database_error("create_token", e)

            record = self._build_record(token_id, request, credentials, actor_id, now)
            try:
                model = create_record(self.session, AccessToken, record)
                break
            except RepositoryError as e:
                if e.error_code != ErrorCode.DUPLICATE or attempt == max_attempts:
                    raise
                self.logger.warning(
                    "Token id already taken, retrying",
                    extra={"token_id": token_id, "attempt": attempt},
                )

        token = AccessTokenRead.from_model(model)
        self.logger.info(
            "Access token issued",
            extra={
                "token_id": token.token_id,
                "owner_reference": token.owner_reference,
                "expires_at": token.expires_at.isoformat(),
            },
        )
        return IssuedToken(token=token, plaintext=credentials.plaintext)

    @operation()
    def get_token(self, token_id: str) -> AccessTokenRead:
        """Fetch a token by its human-readable id."""
        return AccessTokenRead.from_model(self._get_model(token_id))

    # ==================== VERIFICATION ====================

    @operation(redact=("presented",))
    def verify(self, presented: str, now: Optional[datetime] = None) -> Optional[AccessTokenRead]:
        """
        Resolve a presented credential to a usable token.

        The marker is optional. The lookup prefix narrows the query to tokens
        that are active, unrevoked and unexpired; the hash is then compared
        in constant time.

        Returns:
            The matching token, or None. None never says why.
        """
        now = self._now(now)
        raw_secret = strip_token_marker(presented or "", self.policy.token_marker)
        # Issued secrets are hex, so non-ASCII input can never match
        if not raw_secret or not raw_secret.isascii():
            self.logger.info("Access token verification failed")
            return None

        candidate_hash = hash_secret(raw_secret)
        try:
            candidates = list_records(
                self.session,
                AccessToken,
                filters={"secret_prefix": lookup_prefix(raw_secret), "is_active": True},
                criteria=(AccessToken.revoked_at.is_(None), AccessToken.expires_at > now),
            )
        except SQLAlchemyError as e:
            self._handle_database_error("verify", e)

        for model in candidates:
            if secrets_match(candidate_hash, model.secret_hash):
                return AccessTokenRead.from_model(model)

        self.logger.info("Access token verification failed")
        return None

    @operation(redact=("presented",))
    def credential_matches(self, token: TokenRef, presented: str) -> bool:
        """Check a presented credential against one known token, usable or not."""
        model = self._get_model(self._token_key(token))
        return presented_matches_hash(model.secret_hash, presented or "", self.policy.token_marker)

    # ==================== USAGE AND RATE LIMITING ====================

    def _record_usage(
        self, token_id: str, request: Optional[RequestInfo], now: Optional[datetime]
    ) -> Tuple[AccessTokenRead, RateLimitDecision]:
        now = self._now(now)
        request = request or RequestInfo()
        activity = LastActivity(**request.model_dump(), timestamp=now).model_dump(mode="json")
        now_value = literal(now, DateTime(timezone=True))

        values: Dict[str, Any] = {
            "total_requests": AccessToken.total_requests + 1,
            "last_used_at": now,
            "last_activity": activity,
            "updated_at": now,
        }
        # SET expressions all see the pre-update row
        for window, (count_name, reset_name) in _WINDOW_COLUMNS.items():
            count_column = getattr(AccessToken, count_name)
            reset_column = getattr(AccessToken, reset_name)
            stale = reset_column < window_start(now, window)
            values[count_name] = case((stale, 1), else_=count_column + 1)
            values[reset_name] = case((stale, now_value), else_=reset_column)

        try:
            result = self.session.execute(
                update(AccessToken)
                .where(AccessToken.token_id == token_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.session.rollback()
                raise not_found("AccessToken", token_id=token_id)

            model = self.session.execute(
                select(AccessToken)
                .where(AccessToken.token_id == token_id)
                .execution_options(populate_existing=True)
            ).scalar_one()
            token = AccessTokenRead.from_model(model)
            self.session.commit()
        except SQLAlchemyError as e:
            self._handle_database_error("record_and_check", e, token_id=token_id)

        # Every counter was bumped by exactly one; admit against the arrival counts
        usage = token.usage
        arrival_counts = {
            RateWindow.MINUTE: usage.requests_this_minute - 1,
            RateWindow.HOUR: usage.requests_this_hour - 1,
            RateWindow.DAY: usage.requests_today - 1,
        }
        decision = evaluate_rate_limit(token.rate_limits, arrival_counts, usage=usage)

        if not decision.allowed:
            self.logger.warning(
                "Rate limit exceeded",
                extra={
                    "token_id": token_id,
                    "window": decision.window.value,
                    "limit_reason": decision.reason,
                },
            )
        return token, decision

    @operation()
    def record_and_check(
        self,
        token: TokenRef,
        request: Optional[RequestInfo] = None,
        now: Optional[datetime] = None,
    ) -> RateLimitDecision:
        """
        Record one request against the token and decide whether it is admitted.

        Counters, totals, last-used time and the activity snapshot are updated
        in a single UPDATE statement, resetting any counter whose window has
        rolled over. Windows are checked minute, then hour, then day.

        Raises:
            RepositoryError: NOT_FOUND if the token does not exist
        """
        _, decision = self._record_usage(self._token_key(token), request, now)
        return decision

    @operation()
    def check_rate_limit(self, token: TokenRef, now: Optional[datetime] = None) -> RateLimitDecision:
        """Would one more request be admitted? Records nothing."""
        now = self._now(now)
        current = AccessTokenRead.from_model(self._get_model(self._token_key(token)))
        return evaluate_rate_limit(
            current.rate_limits, current_counts(current.usage, now), usage=current.usage
        )

    @operation(redact=("presented",))
    def authenticate(
        self,
        presented: str,
        request: Optional[RequestInfo] = None,
        now: Optional[datetime] = None,
    ) -> AuthenticationResult:
        """
        Verify a bearer credential and meter the request it came with.

        Returns:
            AuthenticationResult with status authenticated, invalid_credentials
            or rate_limited. Use `to_error()` to get the matching exception.
        """
        now = self._now(now)
        token = self.verify(presented, now=now)
        if token is None:
            return AuthenticationResult(status=AuthStatus.INVALID_CREDENTIALS)

        token, decision = self._record_usage(token.token_id, request, now)
        status = AuthStatus.AUTHENTICATED if decision.allowed else AuthStatus.RATE_LIMITED
        return AuthenticationResult(status=status, token=token, decision=decision)

    # ==================== AUTHORIZATION ====================

    @staticmethod
    def has_scope(token: AccessTokenRead, scope: Union[TokenScope, str]) -> bool:
        """True if the token holds `scope` literally or holds admin:all."""
        required = scope.value if isinstance(scope, TokenScope) else scope
        granted = {granted_scope.value for granted_scope in token.scopes}
        return required in granted or TokenScope.ADMIN_ALL.value in granted

    @staticmethod
    def has_capability(token: AccessTokenRead, capability: Union[Capability, str]) -> bool:
        """Read the matching capability flag. Unknown capability names are denied."""
        try:
            capability = Capability(capability)
        except ValueError:
            return False
        return getattr(token.capabilities, capability.value)

    def require_scope(self, token: AccessTokenRead, scope: Union[TokenScope, str]) -> None:
        if not self.has_scope(token, scope):
            required = scope.value if isinstance(scope, TokenScope) else scope
            raise permission_denied(f"scope {required}", "api", token_id=token.token_id)

    def require_capability(self, token: AccessTokenRead, capability: Union[Capability, str]) -> None:
        if not self.has_capability(token, capability):
            name = capability.value if isinstance(capability, Capability) else capability
            raise permission_denied(name, "api", token_id=token.token_id)

    # ==================== LIFECYCLE ====================

    @operation()
    def revoke(
        self,
        token_id: str,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AccessTokenRead:
        """
        Revoke a token. Revocation is permanent.

        Revoking twice keeps the first revocation time, actor and reason; only
        updated_by moves to the latest actor.

        Raises:
            RepositoryError: NOT_FOUND if the token does not exist
        """
        now = self._now(now)
        actor_id = ActorContext.resolve(actor_id)
        model = self._get_model(token_id)

        if model.revoked_at is None:
            model.revoked_at = now
            model.revoked_by = actor_id
            model.revoked_reason = reason
            self.logger.info(
                "Access token revoked",
                extra={"token_id": token_id, "revoked_by": actor_id, "revoked_reason": reason},
            )
        else:
            self.logger.info("Access token already revoked", extra={"token_id": token_id})

        if actor_id:
            model.updated_by = actor_id
        model.updated_at = now
        self._commit("revoke", token_id=token_id)
        return AccessTokenRead.from_model(model)

    @operation()
    def set_active(
        self, token_id: str, is_active: bool, actor_id: Optional[str] = None
    ) -> AccessTokenRead:
        """Switch a token on or off without revoking it."""
        actor_id = ActorContext.resolve(actor_id)
        model = self._get_model(token_id)
        model.is_active = is_active
        if actor_id:
            model.updated_by = actor_id
        self._commit("set_active", token_id=token_id)

        self.logger.info(
            "Access token activation changed",
            extra={"token_id": token_id, "is_active": is_active},
        )
        return AccessTokenRead.from_model(model)

    @operation()
    def list_for_owner(
        self, owner_reference: str, active_only: bool = True, now: Optional[datetime] = None
    ) -> List[AccessTokenRead]:
        """Tokens of one owner, newest first; only usable ones unless active_only=False."""
        if not isinstance(owner_reference, str) or not owner_reference.strip():
            raise validation_failed("owner_reference", owner_reference, "must be a non-empty string")

        now = self._now(now)
        criteria: Tuple[Any, ...] = (AccessToken.owner_reference == owner_reference,)
        if active_only:
            criteria += (
                AccessToken.is_active.is_(True),
                AccessToken.revoked_at.is_(None),
                AccessToken.expires_at > now,
            )

        models = list_records(
            self.session,
            AccessToken,
            criteria=criteria,
            order_by=(AccessToken.created_at.desc(), AccessToken.token_id.desc()),
        )
        return [AccessTokenRead.from_model(model) for model in models]

    @staticmethod
    def _purgeable_criteria(now: datetime) -> Tuple[Any, ...]:
        return (or_(AccessToken.expires_at <= now, AccessToken.revoked_at.isnot(None)),)

    @operation()
    def list_purgeable(self, now: Optional[datetime] = None) -> List[AccessTokenRead]:
        """Tokens purge_expired would delete: expired at `now` or revoked."""
        models = list_records(
            self.session,
            AccessToken,
            criteria=self._purgeable_criteria(self._now(now)),
            order_by=(AccessToken.expires_at.asc(), AccessToken.token_id.asc()),
        )
        return [AccessTokenRead.from_model(model) for model in models]

    @operation()
    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete every token that expired at or before `now` or was revoked.

        Returns:
            Number of tokens deleted
        """
        now = self._now(now)
        deleted = delete_records(self.session, AccessToken, self._purgeable_criteria(now))
        self.logger.info(
            "Purged expired and revoked access tokens",
            extra={"deleted_count": deleted, "cutoff": now.isoformat()},
        )
        return deleted

    @operation()
    def get_token_statistics(
        self, owner_reference: Optional[str] = None, now: Optional[datetime] = None
    ) -> TokenStatistics:
        """
        Count tokens by lifecycle state, for all owners or for one.

        A token counts as active when it is usable, expired when it ran out
        without being revoked, and revoked when it was revoked.
        """
        now = self._now(now)
        filters = {"owner_reference": owner_reference}
        not_revoked = AccessToken.revoked_at.is_(None)

        return TokenStatistics(
            owner_reference=owner_reference,
            total_tokens=count_records(self.session, AccessToken, filters),
            active_tokens=count_records(
                self.session,
                AccessToken,
                {**filters, "is_active": True},
                criteria=(not_revoked, AccessToken.expires_at > now),
            ),
            revoked_tokens=count_records(
                self.session, AccessToken, filters, criteria=(AccessToken.revoked_at.isnot(None),)
            ),
            expired_tokens=count_records(
                self.session,
                AccessToken,
                filters,
                criteria=(not_revoked, AccessToken.expires_at <= now),
            ),
        )
