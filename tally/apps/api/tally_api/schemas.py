"""Pydantic schemas for API requests/responses."""

import datetime as dt
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from tally_api.enums import Frequency

_EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    message: str


# ============================================================================
# RFC 9457 Problem Details
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP API errors.

    RFC 9457: detail can be either a string or a structured object (dict).
    """

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | dict[str, Any] | list[Any] = Field(
        ..., description="Human-readable explanation or structured error details"
    )
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")


# ============================================================================
# Auth / Profile
# ============================================================================


class SignupRequest(BaseModel):
    """Request body for POST /v1/auth/signup."""

    name: Optional[str] = Field(None, max_length=200)
    email: str = Field(..., description="User email address", pattern=_EMAIL_PATTERN)
    password: str = Field(..., description="User password (minimum 8 characters)", min_length=8)


class LoginRequest(BaseModel):
    """Request body for POST /v1/auth/login."""

    email: str = Field(..., description="User email address", pattern=_EMAIL_PATTERN)
    password: str = Field(..., description="User password", min_length=1)


class UserResponse(ORMModel):
    id: str
    name: Optional[str] = None
    email: str
    organization_id: Optional[str] = None
    org_role: Optional[str] = None
    created_at: datetime


class LoginResponse(BaseModel):
    access_token: str = Field(..., description="Opaque session token (display ONCE, never stored)")
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class ResetPasswordRequest(BaseModel):
    email: str = Field(..., pattern=_EMAIL_PATTERN)


class ResetPasswordConfirm(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)


class ProfileUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


# ============================================================================
# Organization
# ============================================================================


class OrganizationCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class OrganizationUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class OrganizationResponse(ORMModel):
    id: str
    name: str
    owner_id: str
    created_at: datetime
    role: Optional[str] = Field(None, description="Caller's role in the organization")
    member_count: Optional[int] = None


class OrgMemberResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    org_role: str
    entry_count: int = 0


class RoleChangeRequest(BaseModel):
    role: str = Field(..., description="ADMIN or MEMBER")


class OrgInviteRequest(BaseModel):
    email: str = Field(..., pattern=_EMAIL_PATTERN)
    role: str = Field("MEMBER", description="ADMIN or MEMBER")


class OrgInvitationResponse(ORMModel):
    id: str
    email: str
    role: str
    status: str
    expires_at: datetime
    created_at: datetime


class OrgInviteCreatedResponse(BaseModel):
    invitation: OrgInvitationResponse
    invite_url: str
    email_sent: bool


class OrgInvitePreview(BaseModel):
    organization_name: str
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    role: str
    email: str
    expires_at: datetime


# ============================================================================
# Projects / Tasks
# ============================================================================


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=_COLOR_PATTERN)
    hourly_rate: Optional[float] = Field(None, ge=0)


class ProjectUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=_COLOR_PATTERN)
    archived: Optional[bool] = None
    hourly_rate: Optional[float] = Field(None, ge=0)


class ProjectResponse(ORMModel):
    id: str
    name: str
    description: Optional[str] = None
    color: str
    archived: bool
    hourly_rate: Optional[float] = None
    owner_id: str
    organization_id: Optional[str] = None
    created_at: datetime


class ProjectMemberResponse(BaseModel):
    id: str
    user_id: str
    name: Optional[str] = None
    email: str
    role: str


class TaskCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class TaskUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    completed: Optional[bool] = None


class TaskResponse(ORMModel):
    id: str
    name: str
    description: Optional[str] = None
    completed: bool
    project_id: str


class ProjectDetailResponse(ProjectResponse):
    is_owner: bool
    members: list[ProjectMemberResponse] = Field(default_factory=list)
    tasks: list[TaskResponse] = Field(default_factory=list)


class ProjectInviteRequest(BaseModel):
    email: str = Field(..., pattern=_EMAIL_PATTERN)


class ProjectInviteResponse(BaseModel):
    message: str
    invite_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    email_sent: Optional[bool] = None


class ProjectInvitePreview(BaseModel):
    project_name: str
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    email: str
    expires_at: datetime


class ProjectInviteAccepted(BaseModel):
    project_id: str
    message: str


# ============================================================================
# Time entries
# ============================================================================


class EntryFieldsRequest(BaseModel):
    task_id: Optional[str] = None
    description: Optional[str] = None
    activity: Optional[str] = None
    subtask: Optional[str] = None
    notes: Optional[str] = None
    billable: bool = True
    tags: list[str] = Field(default_factory=list, description="Unknown tags are dropped")


class StartTimerRequest(EntryFieldsRequest):
    project_id: str


class ManualEntryRequest(EntryFieldsRequest):
    project_id: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, gt=0, description="Seconds, starting 09:00 local on date")
    date: Optional[dt.date] = None


class BulkEntryItem(EntryFieldsRequest):
    project_id: str
    duration: int = Field(..., gt=0)
    date: Optional[dt.date] = None


class BulkEntryRequest(BaseModel):
    entries: list[BulkEntryItem] = Field(..., min_length=1, max_length=50)


class TimeEntryUpdateRequest(BaseModel):
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: Optional[str] = None
    activity: Optional[str] = None
    subtask: Optional[str] = None
    notes: Optional[str] = None
    billable: Optional[bool] = None
    tags: Optional[list[str]] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class TimeEntryResponse(ORMModel):
    id: str
    user_id: str
    project_id: str
    task_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    billable: bool
    activity: Optional[str] = None
    subtask: Optional[str] = None
    notes: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class DuplicateEntryRequest(BaseModel):
    date: Optional[dt.date] = None


class CommentCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(ORMModel):
    id: str
    content: str
    user_id: str
    entry_id: str
    created_at: datetime


# ============================================================================
# Recurring entries / Templates
# ============================================================================


class RecurringCreateRequest(BaseModel):
    project_id: str
    name: str = Field(..., min_length=1, max_length=200)
    activity: Optional[str] = None
    subtask: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    duration: int = Field(..., gt=0)
    billable: bool = True
    frequency: Frequency
    days_of_week: list[int] = Field(default_factory=list, description="0=Sunday .. 6=Saturday")
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    active: bool = True


class RecurringUpdateRequest(BaseModel):
    project_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    activity: Optional[str] = None
    subtask: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    duration: Optional[int] = Field(None, gt=0)
    billable: Optional[bool] = None
    frequency: Optional[Frequency] = None
    days_of_week: Optional[list[int]] = None
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    active: Optional[bool] = None


class RecurringResponse(ORMModel):
    id: str
    user_id: str
    project_id: str
    name: str
    activity: Optional[str] = None
    subtask: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    duration: int
    billable: bool
    frequency: str
    days_of_week: list[int] = Field(default_factory=list)
    day_of_month: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    active: bool
    last_run: Optional[date] = None


class RecurringRunResponse(BaseModel):
    created: int
    entries: list[TimeEntryResponse]


class TemplateCreateRequest(BaseModel):
    project_id: str
    name: str = Field(..., min_length=1, max_length=200)
    activity: Optional[str] = None
    subtask: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    duration: int = Field(..., gt=0)
    billable: bool = True


class TemplateResponse(ORMModel):
    id: str
    user_id: str
    project_id: str
    name: str
    activity: Optional[str] = None
    subtask: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    duration: int
    billable: bool
    is_default: bool


class TemplateUseRequest(BaseModel):
    date: Optional[dt.date] = None


class DefaultsCreatedResponse(BaseModel):
    templates_created: int
    recurring_created: int


# ============================================================================
# Favorites / Tags
# ============================================================================


class FavoriteToggleRequest(BaseModel):
    project_id: str


class FavoriteToggleResponse(BaseModel):
    project_id: str
    favorited: bool


class TagUsage(BaseModel):
    name: str
    count: int


class TagsResponse(BaseModel):
    vocabulary: list[str]
    used: list[TagUsage]


# ============================================================================
# Reports / Team
# ============================================================================


class ProjectTotalResponse(BaseModel):
    project_id: str
    name: str
    color: str
    total_duration: int
    entry_count: int


class DailyTotalResponse(BaseModel):
    date: dt.date
    duration: int


class ReportResponse(BaseModel):
    projects: list[ProjectTotalResponse]
    daily: list[DailyTotalResponse]
    total_duration: int
    total_entries: int


class TeamProjectResponse(BaseModel):
    id: str
    name: str
    color: str
    member_count: int


class TeamMemberResponse(BaseModel):
    user_id: str
    name: str
    email: str
    project_ids: list[str] = Field(default_factory=list)
    total_seconds: int
    billable_seconds: int
    entry_count: int
    per_project: dict[str, int] = Field(default_factory=dict)


class TeamSummaryResponse(BaseModel):
    total_hours: float
    billable_hours: float
    total_value: float


class TeamResponse(BaseModel):
    projects: list[TeamProjectResponse]
    members: list[TeamMemberResponse]
    recent_entries: list[TimeEntryResponse]
    summary: TeamSummaryResponse


class TeamDashboardResponse(BaseModel):
    projects: list[ProjectResponse]
    members: list[TeamMemberResponse]
    entries: list[TimeEntryResponse]
    start_date: date
    end_date: date
