"""Project lifecycle, project membership and tasks.

Reads go through access.projects.get_accessible_project (NotFound when
invisible); owner-level writes through get_modifiable_project (Forbidden
when visible but not owned).
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from tally_api.access import roles
from tally_api.access.errors import Conflict, Forbidden, NotFound, Outcome, reject_nulls
from tally_api.access.membership import get_user_org_id
from tally_api.access.projects import (
    get_accessible_project,
    get_modifiable_project,
    visible_projects_query,
)
from tally_api.auth.token_lifecycle import generate_invite_token
from tally_api.config.env import get_app_base_url, get_invitation_ttl_days
from tally_api.db.models import FavoriteProject, Invitation, Project, ProjectMember, Task, TimeEntry, User
from tally_api.enums import InvitationStatus, ProjectRole
from tally_api.notify.email import EmailResult, send_project_invitation_email
from tally_api.tracking.defaults import seed_project_defaults
from tally_api.utils.timeutil import local_today, utcnow

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("name", "description", "color", "archived", "hourly_rate")
_REQUIRED_FIELDS = ("name", "color", "archived")


@dataclass
class ProjectInviteResult:
    message: str
    invite_url: Optional[str] = None
    invitation: Optional[Invitation] = None
    email: Optional[EmailResult] = None


def list_projects(db: Session, user_id: str, include_archived: bool = True) -> list[Project]:
    query = visible_projects_query(db, user_id)
    if not include_archived:
        query = query.filter(Project.archived.is_(False))
    return query.order_by(Project.created_at.desc()).all()


def create_project(
    db: Session,
    owner_id: str,
    name: str,
    description: Optional[str] = None,
    color: Optional[str] = None,
    hourly_rate: Optional[float] = None,
) -> Project:
    """Create a project owned by `owner_id`.

    The project joins the owner's organization (if any) and is seeded with
    the OWNER membership, default templates and the Daily Standup.
    """
    try:
        project = Project(
            name=name.strip(),
            description=description,
            color=color or "#3B82F6",
            hourly_rate=hourly_rate,
            owner_id=owner_id,
            organization_id=get_user_org_id(db, owner_id),
        )
        db.add(project)
        db.flush()

        db.add(ProjectMember(user_id=owner_id, project_id=project.id, role=ProjectRole.OWNER.value))
        seed_project_defaults(db, owner_id, project.id, local_today())
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(project)
    logger.info(
        "Project created",
        extra={"event": "project.created", "project_id": project.id},
    )
    return project


def update_project(db: Session, user_id: str, project_id: str, changes: dict[str, Any]) -> Project:
    project = get_modifiable_project(db, user_id, project_id)
    reject_nulls(changes, _REQUIRED_FIELDS)
    for field in _UPDATABLE_FIELDS:
        if field in changes:
            setattr(project, field, changes[field])
    db.commit()
    db.refresh(project)
    logger.info(
        "Project updated",
        extra={"event": "project.updated", "project_id": project.id, "fields": sorted(changes)},
    )
    return project


def delete_project(db: Session, user_id: str, project_id: str) -> None:
    """Delete a project and everything scoped to it (ORM cascade)."""
    project = get_modifiable_project(db, user_id, project_id)
    db.delete(project)
    db.commit()
    logger.info("Project deleted", extra={"event": "project.deleted", "project_id": project_id})


def list_project_members(db: Session, project: Project) -> list[tuple[ProjectMember, User]]:
    return (
        db.query(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .filter(ProjectMember.project_id == project.id)
        .order_by(ProjectMember.created_at.asc())
        .all()
    )


def project_invite_url(token: str) -> str:
    return f"{get_app_base_url()}/invite/{token}"


def invite_to_project(db: Session, user_id: str, project_id: str, email: str) -> ProjectInviteResult:
    """Add an existing user directly, or create an emailed invitation.

    Raises:
        NotFound / Forbidden: Project not visible / not owned
        Conflict: Already a member, or a pending invitation exists
    """
    project = get_modifiable_project(db, user_id, project_id)
    email = email.strip().lower()

    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user is not None:
        already = (
            db.query(ProjectMember.id)
            .filter(
                ProjectMember.user_id == existing_user.id,
                ProjectMember.project_id == project.id,
            )
            .first()
        )
        if already is not None:
            raise Conflict("User is already a member")
        db.add(
            ProjectMember(
                user_id=existing_user.id, project_id=project.id, role=ProjectRole.MEMBER.value
            )
        )
        db.commit()
        logger.info(
            "Project member added",
            extra={
                "event": "project.member.added",
                "project_id": project.id,
                "member_user_id": existing_user.id,
            },
        )
        return ProjectInviteResult(message="Member added successfully")

    pending = (
        db.query(Invitation.id)
        .filter(
            Invitation.email == email,
            Invitation.project_id == project.id,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .first()
    )
    if pending is not None:
        raise Conflict("An invitation has already been sent to this email")

    invitation = Invitation(
        email=email,
        token=generate_invite_token(),
        status=InvitationStatus.PENDING.value,
        expires_at=utcnow() + timedelta(days=get_invitation_ttl_days()),
        project_id=project.id,
        sender_id=user_id,
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)

    sender = db.get(User, user_id)
    invite_url = project_invite_url(invitation.token)
    email_result = send_project_invitation_email(
        to=email,
        inviter_name=(sender.name or sender.email) if sender else "A teammate",
        project_name=project.name,
        invite_link=invite_url,
    )
    logger.info(
        "Project invitation created",
        extra={
            "event": "project.invite.created",
            "project_id": project.id,
            "invitation_id": invitation.id,
            "email_sent": email_result.success,
        },
    )
    return ProjectInviteResult(
        message="Invitation created",
        invite_url=invite_url,
        invitation=invitation,
        email=email_result,
    )


def remove_project_member(db: Session, user_id: str, project_id: str, member_id: str) -> None:
    """Remove a ProjectMember row (by membership id). The OWNER row stays."""
    project = get_modifiable_project(db, user_id, project_id)
    member = db.get(ProjectMember, member_id)
    if member is None or member.project_id != project.id:
        raise NotFound("Member not found")
    if member.role == ProjectRole.OWNER:
        raise Forbidden("Cannot remove the project owner")
    db.delete(member)
    db.commit()
    logger.info(
        "Project member removed",
        extra={
            "event": "project.member.removed",
            "project_id": project.id,
            "member_user_id": member.user_id,
        },
    )


def get_project_invitation(db: Session, token: str) -> Invitation:
    invitation = db.query(Invitation).filter(Invitation.token == token).first()
    if invitation is None:
        raise NotFound("Invitation not found")
    roles.check_invitation_status(invitation.status, invitation.expires_at, utcnow()).enforce()
    return invitation


def accept_project_invitation(db: Session, user_id: str, token: str) -> tuple[Project, str]:
    """Join the invitation's project as MEMBER.

    Returns:
        (project, message)

    Raises:
        NotFound: Unknown token
        Conflict: Already accepted
        Expired: Deadline passed (invitation marked EXPIRED)
    """
    invitation = db.query(Invitation).filter(Invitation.token == token).first()
    if invitation is None:
        raise NotFound("Invitation not found")

    decision = roles.check_invitation_status(invitation.status, invitation.expires_at, utcnow())
    if not decision:
        if decision.outcome is Outcome.EXPIRED and invitation.status == InvitationStatus.PENDING:
            invitation.status = InvitationStatus.EXPIRED.value
            db.commit()
        decision.enforce()

    project = db.get(Project, invitation.project_id)
    already = (
        db.query(ProjectMember.id)
        .filter(ProjectMember.user_id == user_id, ProjectMember.project_id == project.id)
        .first()
    )
    try:
        if already is None:
            db.add(ProjectMember(user_id=user_id, project_id=project.id, role=ProjectRole.MEMBER.value))
        invitation.status = InvitationStatus.ACCEPTED.value
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Project invitation accepted",
        extra={
            "event": "project.invite.accepted",
            "project_id": project.id,
            "invitation_id": invitation.id,
        },
    )
    return project, ("Already a member" if already is not None else "Successfully joined project")


# ----------------------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------------------


def list_tasks(db: Session, project: Project) -> list[Task]:
    return db.query(Task).filter(Task.project_id == project.id).order_by(Task.created_at.asc()).all()


def create_task(db: Session, user_id: str, project_id: str, name: str, description: Optional[str] = None) -> Task:
    project = get_modifiable_project(db, user_id, project_id)
    task = Task(name=name.strip(), description=description, project_id=project.id)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def _get_task(db: Session, project: Project, task_id: str) -> Task:
    task = db.get(Task, task_id)
    if task is None or task.project_id != project.id:
        raise NotFound("Task not found")
    return task


def update_task(db: Session, user_id: str, project_id: str, task_id: str, changes: dict[str, Any]) -> Task:
    project = get_modifiable_project(db, user_id, project_id)
    task = _get_task(db, project, task_id)
    reject_nulls(changes, ("name", "completed"))
    for field in ("name", "description", "completed"):
        if field in changes:
            setattr(task, field, changes[field])
    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, user_id: str, project_id: str, task_id: str) -> None:
    project = get_modifiable_project(db, user_id, project_id)
    task = _get_task(db, project, task_id)
    db.query(TimeEntry).filter(TimeEntry.task_id == task.id).update(
        {TimeEntry.task_id: None}, synchronize_session="fetch"
    )
    db.delete(task)
    db.commit()


# ----------------------------------------------------------------------------
# Favorites
# ----------------------------------------------------------------------------


def list_favorite_projects(db: Session, user_id: str) -> list[Project]:
    """Favorited projects the caller can still see."""
    return (
        visible_projects_query(db, user_id)
        .join(FavoriteProject, FavoriteProject.project_id == Project.id)
        .filter(FavoriteProject.user_id == user_id)
        .order_by(Project.name.asc())
        .all()
    )


def toggle_favorite(db: Session, user_id: str, project_id: str) -> bool:
    """Flip the bookmark; returns the new state."""
    project = get_accessible_project(db, user_id, project_id)
    favorite = (
        db.query(FavoriteProject)
        .filter(FavoriteProject.user_id == user_id, FavoriteProject.project_id == project.id)
        .first()
    )
    if favorite is not None:
        db.delete(favorite)
        db.commit()
        return False
    db.add(FavoriteProject(user_id=user_id, project_id=project.id))
    db.commit()
    return True
