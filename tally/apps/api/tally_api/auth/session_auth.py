"""Session authentication for user-authenticated endpoints.

FLOW:
1. User logs in via POST /v1/auth/login -> receives opaque session token
2. User calls an endpoint with Authorization: Bearer <token>
3. Dependency hashes the token, looks up an active auth_sessions row
4. Returns SessionAuthContext(user_id, session_id, organization_id, org_role)

SECURITY:
- Only the HMAC hash of the token is stored
- Revoked and expired sessions are rejected
- Missing/invalid sessions surface as 401 problem+json
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tally_api.access.errors import Unauthenticated
from tally_api.auth.token_lifecycle import SESSION_TOKEN_PREFIX, hash_token
from tally_api.context import org_id_var, user_id_var
from tally_api.db.models import AuthSession, User
from tally_api.db.session import get_db
from tally_api.utils.timeutil import as_utc, utcnow

logger = logging.getLogger(__name__)

session_security = HTTPBearer(auto_error=False, description="Tally session token")


class SessionAuthContext:
    """Session authentication context for user-authenticated requests."""

    def __init__(
        self,
        user_id: str,
        session_id: str,
        email: str,
        organization_id: Optional[str] = None,
        org_role: Optional[str] = None,
    ):
        self.user_id = user_id
        self.session_id = session_id
        self.email = email
        self.organization_id = organization_id
        self.org_role = org_role


async def require_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
    db: Session = Depends(get_db),
) -> SessionAuthContext:
    """Resolve the bearer session token to a user.

    Raises:
        Unauthenticated: Missing, unknown, revoked or expired session
    """
    if not credentials:
        raise Unauthenticated("Missing Authorization header. Please log in first.")

    raw_token = credentials.credentials
    if not raw_token.startswith(f"{SESSION_TOKEN_PREFIX}_"):
        raise Unauthenticated("Invalid session token. Please log in again.")

    session_row = (
        db.query(AuthSession)
        .filter(AuthSession.token_hash == hash_token(raw_token))
        .first()
    )

    if session_row is None or session_row.revoked_at is not None:
        raise Unauthenticated("Invalid session token. Please log in again.")

    now = utcnow()
    if as_utc(session_row.expires_at) <= now:
        logger.info(
            "Expired session rejected",
            extra={"event": "session.expired", "session_id": session_row.id},
        )
        raise Unauthenticated("Session expired. Please log in again.")

    user = db.get(User, session_row.user_id)
    if user is None:
        raise Unauthenticated("Invalid session token. Please log in again.")

    session_row.last_used_at = now
    db.commit()

    user_id_var.set(user.id)
    org_id_var.set(user.organization_id or "")

    return SessionAuthContext(
        user_id=user.id,
        session_id=session_row.id,
        email=user.email,
        organization_id=user.organization_id,
        org_role=user.org_role if user.organization_id else None,
    )
