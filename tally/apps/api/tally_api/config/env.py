"""Environment variable resolution utilities.

Canonical env names + fail-fast validation.
"""

import os
from typing import Optional

_DEV_DATABASE_URL = "sqlite:///./tally.db"


def get_tally_env() -> str:
    """Get environment name.

    Priority:
    1. TALLY_ENV (canonical)
    2. Default: "local"

    Returns:
        Environment name (lowercase)
    """
    return (os.getenv("TALLY_ENV") or "local").lower()


def is_production_env() -> bool:
    """True when TALLY_ENV is prod/production."""
    return get_tally_env() in {"prod", "production"}


def get_database_url() -> str:
    """Get runtime database URL.

    Production: DATABASE_URL is required (fail-fast).
    Development/CI: falls back to a local SQLite file.

    Raises:
        RuntimeError: If DATABASE_URL is missing in production
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    if is_production_env():
        raise RuntimeError(
            "DATABASE_URL environment variable is required in production (TALLY_ENV=prod/production). "
            "Check deployment configuration and secrets injection."
        )
    return _DEV_DATABASE_URL


def get_app_base_url() -> str:
    """Public base URL used to build invitation and reset links."""
    return os.getenv("APP_BASE_URL", "http://localhost:3000").rstrip("/")


def get_cors_allowed_origins() -> list[str]:
    """Explicit CORS allowlist (comma-separated), localhost variants otherwise."""
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]


def _get_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def get_session_ttl_hours() -> int:
    """Lifetime of a login session token (TALLY_SESSION_TTL_HOURS, default 720)."""
    return _get_positive_int("TALLY_SESSION_TTL_HOURS", 720)


def get_invitation_ttl_days() -> int:
    """Invitation deadline (TALLY_INVITATION_TTL_DAYS, default 7)."""
    return _get_positive_int("TALLY_INVITATION_TTL_DAYS", 7)


def get_reset_token_ttl_minutes() -> int:
    """Password reset token lifetime (TALLY_RESET_TOKEN_TTL_MINUTES, default 60)."""
    return _get_positive_int("TALLY_RESET_TOKEN_TTL_MINUTES", 60)


def get_local_timezone_name() -> str:
    """IANA timezone used for 09:00 local defaults (TALLY_TIMEZONE, default UTC)."""
    return os.getenv("TALLY_TIMEZONE") or "UTC"


def get_resend_api_key() -> Optional[str]:
    """Resend API key. None disables outbound email."""
    return os.getenv("RESEND_API_KEY") or None


def get_resend_from_email() -> str:
    return os.getenv("RESEND_FROM_EMAIL", "Tally <onboarding@resend.dev>")
