"""Pydantic schemas for the access token core."""

from .access_token_schemas import (
    AccessTokenCreate,
    AccessTokenRead,
    AuthenticationResult,
    Capabilities,
    DomainRestriction,
    IpRestriction,
    IssuedCredentials,
    IssuedToken,
    LastActivity,
    RateLimitDecision,
    RateLimits,
    RequestInfo,
    Revocation,
    SecurityFlags,
    TokenStatistics,
    UsageStats,
)

__all__ = [
    "AccessTokenCreate",
    "AccessTokenRead",
    "AuthenticationResult",
    "Capabilities",
    "DomainRestriction",
    "IpRestriction",
    "IssuedCredentials",
    "IssuedToken",
    "LastActivity",
    "RateLimitDecision",
    "RateLimits",
    "RequestInfo",
    "Revocation",
    "SecurityFlags",
    "TokenStatistics",
    "UsageStats",
]
