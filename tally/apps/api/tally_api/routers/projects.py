"""Project endpoints.

Read access: owner, project member, or same organization (else 404).
Write access: owner only (visible but not owned -> 403).
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tally_api.access.projects import can_modify_project, get_accessible_project
from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.session import get_db
from tally_api.schemas import (
    MessageResponse,
    ProjectCreateRequest,
    ProjectDetailResponse,
    ProjectInviteRequest,
    ProjectInviteResponse,
    ProjectMemberResponse,
    ProjectResponse,
    ProjectUpdateRequest,
    TaskCreateRequest,
    TaskResponse,
    TaskUpdateRequest,
)
from tally_api.tracking import projects as service

router = APIRouter(prefix="/v1/projects", tags=["projects"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    include_archived: bool = Query(True),
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[ProjectResponse]:
    return [
        ProjectResponse.model_validate(p)
        for p in service.list_projects(db, auth.user_id, include_archived=include_archived)
    ]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ProjectResponse)
async def create_project(
    request: ProjectCreateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> ProjectResponse:
    """Create a project with its OWNER membership and starter templates."""
    project = service.create_project(
        db,
        auth.user_id,
        request.name,
        description=request.description,
        color=request.color,
        hourly_rate=request.hourly_rate,
    )
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> ProjectDetailResponse:
    project = get_accessible_project(db, auth.user_id, project_id)
    members = [
        ProjectMemberResponse(
            id=membership.id,
            user_id=user.id,
            name=user.name,
            email=user.email,
            role=membership.role,
        )
        for membership, user in service.list_project_members(db, project)
    ]
    base = ProjectResponse.model_validate(project).model_dump()
    return ProjectDetailResponse(
        **base,
        is_owner=can_modify_project(auth.user_id, project),
        members=members,
        tasks=[TaskResponse.model_validate(t) for t in service.list_tasks(db, project)],
    )


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    request: ProjectUpdateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> ProjectResponse:
    changes = request.model_dump(exclude_unset=True)
    project = service.update_project(db, auth.user_id, project_id, changes)
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    service.delete_project(db, auth.user_id, project_id)
    return MessageResponse(message="Project deleted")


@router.post("/{project_id}/invite", response_model=ProjectInviteResponse)
async def invite_to_project(
    project_id: str,
    request: ProjectInviteRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> ProjectInviteResponse:
    """Add an existing user, or create an invitation for a new email."""
    result = service.invite_to_project(db, auth.user_id, project_id, request.email)
    return ProjectInviteResponse(
        message=result.message,
        invite_url=result.invite_url,
        expires_at=result.invitation.expires_at if result.invitation else None,
        email_sent=result.email.success if result.email else None,
    )


@router.delete("/{project_id}/members/{member_id}", response_model=MessageResponse)
async def remove_project_member(
    project_id: str,
    member_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    service.remove_project_member(db, auth.user_id, project_id, member_id)
    return MessageResponse(message="Member removed")


@router.post("/{project_id}/tasks", status_code=status.HTTP_201_CREATED, response_model=TaskResponse)
async def create_task(
    project_id: str,
    request: TaskCreateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TaskResponse:
    task = service.create_task(db, auth.user_id, project_id, request.name, request.description)
    return TaskResponse.model_validate(task)


@router.put("/{project_id}/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    project_id: str,
    task_id: str,
    request: TaskUpdateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TaskResponse:
    task = service.update_task(db, auth.user_id, project_id, task_id, request.model_dump(exclude_unset=True))
    return TaskResponse.model_validate(task)


@router.delete("/{project_id}/tasks/{task_id}", response_model=MessageResponse)
async def delete_task(
    project_id: str,
    task_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    service.delete_task(db, auth.user_id, project_id, task_id)
    return MessageResponse(message="Task deleted")
