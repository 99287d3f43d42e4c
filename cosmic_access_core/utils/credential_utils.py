"""
Secret generation and hashing for access tokens.

Only the SHA-256 hex digest and an 8 character lookup prefix of the raw
secret are ever stored. The plaintext (marker + raw secret) exists once, in
the response to the issuing call.
"""

import hashlib
import hmac
import secrets
from typing import Optional

from ..config import get_config
from ..constants import TokenFormat
from ..schemas.access_token_schemas import IssuedCredentials


def _marker(marker: Optional[str]) -> str:
    return marker if marker is not None else get_config().tokens.token_marker


def hash_secret(raw_secret: str) -> str:
    """SHA-256 hex digest of the raw secret. Any str hashes, lone surrogates included."""
    return hashlib.sha256(raw_secret.encode("utf-8", errors="surrogatepass")).hexdigest()


def lookup_prefix(raw_secret: str) -> str:
    return raw_secret[: TokenFormat.LOOKUP_PREFIX_LENGTH]


def strip_token_marker(presented: str, marker: Optional[str] = None) -> str:
    """Remove one leading marker, if present. Anything else is left as is."""
    marker = _marker(marker)
    if marker and presented.startswith(marker):
        return presented[len(marker) :]
    return presented


def secrets_match(candidate_hash: str, stored_hash: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(candidate_hash.encode("ascii"), stored_hash.encode("ascii"))


def credential_matches(stored_hash: str, presented: str, marker: Optional[str] = None) -> bool:
    """Check a presented credential, with or without marker, against a stored hash."""
    return secrets_match(hash_secret(strip_token_marker(presented, marker)), stored_hash)


def issue_credentials(marker: Optional[str] = None) -> IssuedCredentials:
    """
    Generate a fresh secret.

    Returns:
        IssuedCredentials with the lookup prefix, the hash to persist and the
        plaintext to hand to the caller exactly once
    """
    raw_secret = secrets.token_bytes(TokenFormat.SECRET_BYTES).hex()
    return IssuedCredentials(
        prefix=lookup_prefix(raw_secret),
        secret_hash=hash_secret(raw_secret),
        plaintext=f"{_marker(marker)}{raw_secret}",
    )
