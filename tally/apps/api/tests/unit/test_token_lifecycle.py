"""Tests for password hashing and token generation.

- Session tokens carry the tly_sess_ prefix and are stored only as hashes
- Hashing is deterministic per pepper and changes with the pepper
- Invitation/reset tokens are 64 hex chars
"""

import os
import re
from unittest.mock import patch

import pytest

from tally_api.auth.passwords import hash_password, verify_password
from tally_api.auth.token_lifecycle import (
    SESSION_TOKEN_PREFIX,
    generate_invite_token,
    generate_session_token,
    get_pepper,
    hash_token,
    verify_token_hash,
)


class TestPasswords:
    def test_hash_and_verify(self):
        stored = hash_password("s3cret-password")
        assert stored.startswith("scrypt$")
        assert verify_password("s3cret-password", stored)
        assert not verify_password("wrong-password", stored)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    @pytest.mark.parametrize("stored", ["", "plain", "bcrypt$1$2$3$abc$def", "scrypt$x$8$1$abc$def"])
    def test_malformed_hash_verifies_false(self, stored):
        assert verify_password("anything", stored) is False


class TestSessionTokens:
    def test_format(self):
        token, last4 = generate_session_token()
        assert token.startswith(f"{SESSION_TOKEN_PREFIX}_")
        assert last4 == token[-4:]

    def test_unique(self):
        assert generate_session_token()[0] != generate_session_token()[0]

    def test_hash_is_deterministic_and_verifiable(self):
        token, _ = generate_session_token()
        assert hash_token(token) == hash_token(token)
        assert verify_token_hash(token, hash_token(token))
        assert not verify_token_hash(token + "x", hash_token(token))

    def test_hash_depends_on_pepper(self):
        token, _ = generate_session_token()
        original = hash_token(token)
        with patch.dict(os.environ, {"TOKEN_PEPPER_V1": "another-pepper"}):
            assert hash_token(token) != original

    def test_missing_pepper_fails_fast(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("TOKEN_PEPPER_V2", None)
            with pytest.raises(ValueError, match="TOKEN_PEPPER_V2"):
                get_pepper(2)


def test_invite_token_is_64_hex_chars():
    token = generate_invite_token()
    assert re.fullmatch(r"[0-9a-f]{64}", token)
    assert token != generate_invite_token()
