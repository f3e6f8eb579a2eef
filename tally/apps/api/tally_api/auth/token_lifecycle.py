"""Token generation and hashing.

Session tokens: opaque Bearer tokens, HMAC-SHA256 hashed with a secret PEPPER.
Invitation and reset tokens: 32 random bytes, hex encoded, single-use.

SECURITY:
- Raw session tokens are NEVER stored in database
- Display-once: session tokens returned only at login
- Pepper versioning for key rotation support
"""

import base64
import hashlib
import hmac
import logging
import os
import secrets
from typing import Tuple

logger = logging.getLogger(__name__)

SESSION_TOKEN_PREFIX = "tly_sess"


def get_pepper(version: int = 1) -> str:
    """Get pepper by version for HMAC hashing.

    Environment Variables:
    - TOKEN_PEPPER_V1: Required for version 1 (default)
    - TOKEN_PEPPER_V2: Optional for version 2 (future rotation)

    Raises:
        ValueError: If pepper not found for version
    """
    env_key = f"TOKEN_PEPPER_V{version}"
    pepper = os.getenv(env_key)

    if not pepper:
        raise ValueError(
            f"{env_key} environment variable is required for token hashing. "
            f"Generate with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
        )

    return pepper


def generate_session_token() -> Tuple[str, str]:
    """Generate a new opaque session token.

    Token format: tly_sess_{base64url(32_random_bytes)}

    Returns:
        Tuple of (full_token, last4)
    """
    random_part = base64.urlsafe_b64encode(secrets.token_bytes(32)).decode("ascii").rstrip("=")
    full_token = f"{SESSION_TOKEN_PREFIX}_{random_part}"
    last4 = full_token[-4:]

    logger.info(
        "Session token generated",
        extra={
            "event": "session.token.generated",
            "last4": last4,
            # Do NOT log full token
        },
    )

    return full_token, last4


def generate_invite_token() -> str:
    """32 random bytes, hex encoded (64 chars). Used for invitations and resets."""
    return secrets.token_hex(32)


def hash_token(raw_token: str, pepper_version: int = 1) -> str:
    """Hash token using HMAC-SHA256 with pepper.

    Returns:
        Base64url-encoded HMAC-SHA256 hash (no padding)
    """
    pepper = get_pepper(pepper_version)

    hmac_digest = hmac.new(
        key=pepper.encode("utf-8"),
        msg=raw_token.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).digest()

    return base64.urlsafe_b64encode(hmac_digest).decode("ascii").rstrip("=")


def verify_token_hash(raw_token: str, expected_hash: str, pepper_version: int = 1) -> bool:
    """Verify token hash matches expected value (constant-time)."""
    computed_hash = hash_token(raw_token, pepper_version)
    return hmac.compare_digest(computed_hash, expected_hash)
