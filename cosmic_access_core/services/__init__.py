"""Service layer for the access token core."""

from .access_token_service import AccessTokenService
from .base_service import SessionManagedService

__all__ = ["AccessTokenService", "SessionManagedService"]
