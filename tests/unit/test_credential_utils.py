"""
Unit tests for credential generation and hashing.
"""

import hashlib
import re

import pytest

from cosmic_access_core.config import AppConfig, TokenPolicyConfig, set_config
from cosmic_access_core.utils.credential_utils import (
    credential_matches,
    hash_secret,
    issue_credentials,
    lookup_prefix,
    secrets_match,
    strip_token_marker,
)

HEX_64 = re.compile(r"^[0-9a-f]{64}$")


class TestIssueCredentials:
    """Test fresh secret generation."""

    def test_plaintext_shape(self):
        issued = issue_credentials()

        assert issued.plaintext.startswith("cosmic_")
        raw_secret = issued.plaintext[len("cosmic_") :]
        assert HEX_64.match(raw_secret)
        assert issued.prefix == raw_secret[:8]
        assert issued.secret_hash == hashlib.sha256(raw_secret.encode()).hexdigest()

    def test_secrets_are_unique(self):
        plaintexts = {issue_credentials().plaintext for _ in range(50)}
        assert len(plaintexts) == 50

    def test_plaintext_not_in_repr(self):
        issued = issue_credentials()
        assert issued.plaintext not in repr(issued)
        assert issued.secret_hash in repr(issued)

    def test_marker_from_config(self):
        set_config(AppConfig(tokens=TokenPolicyConfig(token_marker="crm_")))
        assert issue_credentials().plaintext.startswith("crm_")

    def test_explicit_marker(self):
        assert issue_credentials(marker="x_").plaintext.startswith("x_")


class TestStripTokenMarker:
    """Test optional marker handling on presented credentials."""

    @pytest.mark.parametrize(
        "presented,expected",
        [
            ("cosmic_abc123", "abc123"),
            ("abc123", "abc123"),
            ("cosmic_cosmic_abc", "cosmic_abc"),
            ("xcosmic_abc", "xcosmic_abc"),
            ("cosmic_", ""),
            ("", ""),
        ],
    )
    def test_only_one_leading_marker_is_removed(self, presented, expected):
        assert strip_token_marker(presented) == expected


class TestHashing:
    """Test hash and comparison helpers."""

    def test_hash_is_sha256_hex(self):
        assert hash_secret("abc") == hashlib.sha256(b"abc").hexdigest()
        assert HEX_64.match(hash_secret("abc"))

    def test_lone_surrogate_hashes(self):
        assert HEX_64.match(hash_secret("\ud800abc"))
        assert hash_secret("\ud800abc") != hash_secret("abc")

    def test_lookup_prefix(self):
        assert lookup_prefix("0123456789abcdef") == "01234567"

    def test_secrets_match(self):
        digest = hash_secret("abc")
        assert secrets_match(digest, hash_secret("abc"))
        assert not secrets_match(digest, hash_secret("abd"))

    def test_credential_matches_with_and_without_marker(self):
        issued = issue_credentials()
        raw_secret = issued.plaintext[len("cosmic_") :]

        assert credential_matches(issued.secret_hash, issued.plaintext)
        assert credential_matches(issued.secret_hash, raw_secret)
        assert not credential_matches(issued.secret_hash, raw_secret[:-1] + "x")
