"""SQLAlchemy ORM Models for Tally."""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    BIGINT,
    BOOLEAN,
    DATE,
    FLOAT,
    JSON,
    TEXT,
    TIMESTAMP,
    ForeignKey,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ============================================================================
# Identity & Organizations
# ============================================================================


class User(Base):
    """User model. org_role is meaningful only when organization_id is set."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    email: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)  # lower-cased
    password_hash: Mapped[str] = mapped_column(TEXT, nullable=False)

    organization_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("organizations.id"), nullable=True
    )
    org_role: Mapped[str] = mapped_column(TEXT, nullable=False, default="MEMBER")

    # Password reset (single-use, 1 hour)
    reset_token: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True, unique=True)
    reset_token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (Index("idx_users_organization", "organization_id"),)


class Organization(Base):
    """Organization. owner_id mirrors the single member with org_role=OWNER."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    owner_id: Mapped[str] = mapped_column(TEXT, nullable=False)  # FK to users
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )


class OrgInvitation(Base):
    """Organization invitation - single-use token, deadline checked at acceptance."""

    __tablename__ = "org_invitations"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(TEXT, nullable=False)
    role: Mapped[str] = mapped_column(TEXT, nullable=False, default="MEMBER")  # ADMIN | MEMBER
    token: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="PENDING")
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    organization_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("organizations.id"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(TEXT, nullable=False)  # FK to users
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (
        Index("idx_org_invitations_org_status", "organization_id", "status"),
        Index("idx_org_invitations_email", "email"),
    )


class AuthSession(Base):
    """Login session - opaque bearer token stored as HMAC-SHA256 hash."""

    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    token_hash: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    pepper_version: Mapped[int] = mapped_column(BIGINT, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (Index("idx_auth_sessions_user", "user_id"),)


# ============================================================================
# Projects
# ============================================================================


class Project(Base):
    """Project - visible to its owner, its members, and its organization."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    color: Mapped[str] = mapped_column(TEXT, nullable=False, default="#3B82F6")
    archived: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    hourly_rate: Mapped[Optional[float]] = mapped_column(FLOAT, nullable=True)

    owner_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    organization_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("organizations.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now, onupdate=_now
    )

    # Deleting a project removes everything scoped to it
    members: Mapped[list["ProjectMember"]] = relationship(cascade="all, delete-orphan")
    tasks: Mapped[list["Task"]] = relationship(cascade="all, delete-orphan")
    time_entries: Mapped[list["TimeEntry"]] = relationship(cascade="all, delete-orphan")
    templates: Mapped[list["TimeTemplate"]] = relationship(cascade="all, delete-orphan")
    recurring_entries: Mapped[list["RecurringEntry"]] = relationship(
        cascade="all, delete-orphan"
    )
    invitations: Mapped[list["Invitation"]] = relationship(cascade="all, delete-orphan")
    favorites: Mapped[list["FavoriteProject"]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_projects_owner", "owner_id"),
        Index("idx_projects_organization", "organization_id"),
    )


class ProjectMember(Base):
    """Explicit project membership. role: OWNER | MEMBER."""

    __tablename__ = "project_members"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    project_id: Mapped[str] = mapped_column(TEXT, ForeignKey("projects.id"), nullable=False)
    role: Mapped[str] = mapped_column(TEXT, nullable=False, default="MEMBER")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_project_members_user_project"),
    )


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    completed: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    project_id: Mapped[str] = mapped_column(TEXT, ForeignKey("projects.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )


class Invitation(Base):
    """Project invitation for an email with no account yet."""

    __tablename__ = "invitations"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(TEXT, nullable=False)
    token: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="PENDING")
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    project_id: Mapped[str] = mapped_column(TEXT, ForeignKey("projects.id"), nullable=False)
    sender_id: Mapped[str] = mapped_column(TEXT, nullable=False)  # FK to users
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )


class FavoriteProject(Base):
    __tablename__ = "favorite_projects"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    project_id: Mapped[str] = mapped_column(TEXT, ForeignKey("projects.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_favorite_projects_user_project"),
    )


# ============================================================================
# Time Tracking
# ============================================================================


class TimeEntry(Base):
    """Time entry. end_time NULL means the timer is running."""

    __tablename__ = "time_entries"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    project_id: Mapped[str] = mapped_column(TEXT, ForeignKey("projects.id"), nullable=False)
    task_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )

    start_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    duration: Mapped[Optional[int]] = mapped_column(BIGINT, nullable=True)  # seconds

    billable: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=True)
    activity: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    subtask: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now, onupdate=_now
    )

    comments: Mapped[list["EntryComment"]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_time_entries_user_start", "user_id", "start_time"),
        Index("idx_time_entries_project", "project_id"),
        # At most one running timer per user
        Index(
            "uq_time_entries_running_timer",
            "user_id",
            unique=True,
            sqlite_where=text("end_time IS NULL"),
            postgresql_where=text("end_time IS NULL"),
        ),
    )


class EntryComment(Base):
    __tablename__ = "entry_comments"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    content: Mapped[str] = mapped_column(TEXT, nullable=False)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    entry_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("time_entries.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (Index("idx_entry_comments_entry", "entry_id"),)


class TimeTemplate(Base):
    """Reusable entry shape; using it materializes an entry at 09:00 local."""

    __tablename__ = "time_templates"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    project_id: Mapped[str] = mapped_column(TEXT, ForeignKey("projects.id"), nullable=False)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    activity: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    subtask: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    duration: Mapped[int] = mapped_column(BIGINT, nullable=False)  # seconds
    billable: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=True)
    is_default: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (Index("idx_time_templates_user", "user_id"),)


class RecurringEntry(Base):
    """Recurring entry definition. last_run is the claim marker for a day."""

    __tablename__ = "recurring_entries"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    project_id: Mapped[str] = mapped_column(TEXT, ForeignKey("projects.id"), nullable=False)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    activity: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    subtask: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    duration: Mapped[int] = mapped_column(BIGINT, nullable=False)  # seconds
    billable: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=True)

    frequency: Mapped[str] = mapped_column(TEXT, nullable=False)  # DAILY | WEEKLY | MONTHLY
    days_of_week: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # 0=Sunday
    day_of_month: Mapped[Optional[int]] = mapped_column(BIGINT, nullable=True)

    start_date: Mapped[date] = mapped_column(DATE, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(DATE, nullable=True)
    active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=True)
    last_run: Mapped[Optional[date]] = mapped_column(DATE, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (Index("idx_recurring_entries_user_active", "user_id", "active"),)
