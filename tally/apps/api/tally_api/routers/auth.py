"""Auth endpoints: signup, login, logout, password reset, profile.

Endpoints:
- POST /v1/auth/signup: Create account (scrypt password hash)
- POST /v1/auth/login: Issue opaque session token (display once)
- POST /v1/auth/logout: Revoke current session
- POST /v1/auth/reset-password: Email a single-use reset link (1 hour)
- PUT  /v1/auth/reset-password: Set a new password with the reset token
- GET/PUT /v1/me: Current user profile

SECURITY:
- Passwords and tokens never logged
- Login failures do not reveal whether the email exists
- Reset requests always answer with the same message
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tally_api.access.errors import BadRequest, Conflict, Unauthenticated
from tally_api.auth.passwords import hash_password, verify_password
from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.auth.token_lifecycle import generate_invite_token, generate_session_token, hash_token
from tally_api.config.env import get_app_base_url, get_reset_token_ttl_minutes, get_session_ttl_hours
from tally_api.db.models import AuthSession, User
from tally_api.db.session import get_db
from tally_api.notify.email import send_password_reset_email, send_welcome_email
from tally_api.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdateRequest,
    ResetPasswordConfirm,
    ResetPasswordRequest,
    SignupRequest,
    UserResponse,
)
from tally_api.utils.timeutil import as_utc, utcnow

router = APIRouter(prefix="/v1", tags=["auth"])
logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists with this email, you will receive a password reset link."


@router.post("/auth/signup", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
async def signup(request: SignupRequest, db: Session = Depends(get_db)) -> UserResponse:
    """Register a new user.

    Raises:
        Conflict (409): Email already registered
    """
    email = request.email.strip().lower()
    if db.query(User.id).filter(User.email == email).first() is not None:
        raise Conflict("An account with this email already exists")

    user = User(
        name=(request.name or "").strip() or None,
        email=email,
        password_hash=hash_password(request.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("An account with this email already exists")
    db.refresh(user)

    logger.info("auth.signup.success", extra={"event": "auth.signup", "user_id": user.id})
    send_welcome_email(user.email, user.name)
    return UserResponse.model_validate(user)


@router.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """Exchange email/password for a session token.

    Raises:
        Unauthenticated (401): Invalid credentials
    """
    email = request.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(request.password, user.password_hash):
        logger.info("auth.login.failed", extra={"event": "auth.login.failed"})
        raise Unauthenticated("Invalid email or password")

    raw_token, _ = generate_session_token()
    expires_at = utcnow() + timedelta(hours=get_session_ttl_hours())
    session_row = AuthSession(
        user_id=user.id,
        token_hash=hash_token(raw_token, pepper_version=1),
        pepper_version=1,
        expires_at=expires_at,
    )
    db.add(session_row)
    db.commit()

    logger.info(
        "auth.login.success",
        extra={"event": "auth.login", "user_id": user.id, "session_id": session_row.id},
    )
    return LoginResponse(
        access_token=raw_token,
        expires_at=expires_at,
        user=UserResponse.model_validate(user),
    )


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    session_row = db.get(AuthSession, auth.session_id)
    if session_row is not None and session_row.revoked_at is None:
        session_row.revoked_at = utcnow()
        db.commit()
    logger.info("auth.logout", extra={"event": "auth.logout", "session_id": auth.session_id})
    return MessageResponse(message="Logged out")


@router.post("/auth/reset-password", response_model=MessageResponse)
async def request_password_reset(
    request: ResetPasswordRequest, db: Session = Depends(get_db)
) -> MessageResponse:
    """Issue a reset token and email it (best-effort).

    Always returns the same message so account existence is not revealed.
    """
    user = db.query(User).filter(User.email == request.email.strip().lower()).first()
    if user is not None:
        user.reset_token = generate_invite_token()
        user.reset_token_expires_at = utcnow() + timedelta(minutes=get_reset_token_ttl_minutes())
        db.commit()
        reset_link = f"{get_app_base_url()}/reset-password?token={user.reset_token}"
        result = send_password_reset_email(user.email, reset_link)
        logger.info(
            "auth.reset.requested",
            extra={"event": "auth.reset.requested", "user_id": user.id, "email_sent": result.success},
        )
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.put("/auth/reset-password", response_model=MessageResponse)
async def confirm_password_reset(
    request: ResetPasswordConfirm, db: Session = Depends(get_db)
) -> MessageResponse:
    """Set a new password with a valid reset token (single-use).

    Existing sessions are revoked.

    Raises:
        BadRequest (400): Unknown or expired token
    """
    user = db.query(User).filter(User.reset_token == request.token).first()
    if (
        user is None
        or user.reset_token_expires_at is None
        or as_utc(user.reset_token_expires_at) < utcnow()
    ):
        raise BadRequest("Invalid or expired reset token")

    user.password_hash = hash_password(request.password)
    user.reset_token = None
    user.reset_token_expires_at = None
    now = utcnow()
    db.query(AuthSession).filter(
        AuthSession.user_id == user.id, AuthSession.revoked_at.is_(None)
    ).update({AuthSession.revoked_at: now}, synchronize_session="fetch")
    db.commit()

    logger.info("auth.reset.completed", extra={"event": "auth.reset.completed", "user_id": user.id})
    return MessageResponse(message="Password has been reset successfully")


@router.get("/me", response_model=UserResponse)
async def get_me(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> UserResponse:
    return UserResponse.model_validate(db.get(User, auth.user_id))


@router.put("/me", response_model=UserResponse)
async def update_me(
    request: ProfileUpdateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> UserResponse:
    user = db.get(User, auth.user_id)
    user.name = request.name.strip()
    db.commit()
    db.refresh(user)
    return UserResponse.model_validate(user)
