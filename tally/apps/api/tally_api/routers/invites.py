"""Invitation landing endpoints (token-addressed).

- GET  /v1/org-invites/{token}: public preview
- POST /v1/org-invites/{token}/accept: join the organization (session required)
- GET  /v1/invitations/{token}: public project invitation preview
- POST /v1/invitations/{token}/accept: join the project (session required)

Tokens are single-use: accepted -> 409, past deadline -> 410.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.models import Organization, Project, User
from tally_api.db.session import get_db
from tally_api.orgs import lifecycle
from tally_api.schemas import (
    OrganizationResponse,
    OrgInvitePreview,
    ProjectInviteAccepted,
    ProjectInvitePreview,
)
from tally_api.tracking import projects as project_service

router = APIRouter(prefix="/v1", tags=["invitations"])
logger = logging.getLogger(__name__)


@router.get("/org-invites/{token}", response_model=OrgInvitePreview)
async def preview_org_invitation(token: str, db: Session = Depends(get_db)) -> OrgInvitePreview:
    invitation = lifecycle.get_invitation_by_token(db, token)
    org = db.get(Organization, invitation.organization_id)
    sender = db.get(User, invitation.sender_id)
    return OrgInvitePreview(
        organization_name=org.name,
        sender_name=sender.name if sender else None,
        sender_email=sender.email if sender else None,
        role=invitation.role,
        email=invitation.email,
        expires_at=invitation.expires_at,
    )


@router.post("/org-invites/{token}/accept", response_model=OrganizationResponse)
async def accept_org_invitation(
    token: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> OrganizationResponse:
    org = lifecycle.accept_invitation(db, auth.user_id, token)
    user = db.get(User, auth.user_id)
    return OrganizationResponse(
        id=org.id,
        name=org.name,
        owner_id=org.owner_id,
        created_at=org.created_at,
        role=user.org_role,
    )


@router.get("/invitations/{token}", response_model=ProjectInvitePreview)
async def preview_project_invitation(token: str, db: Session = Depends(get_db)) -> ProjectInvitePreview:
    invitation = project_service.get_project_invitation(db, token)
    project = db.get(Project, invitation.project_id)
    sender = db.get(User, invitation.sender_id)
    return ProjectInvitePreview(
        project_name=project.name,
        sender_name=sender.name if sender else None,
        sender_email=sender.email if sender else None,
        email=invitation.email,
        expires_at=invitation.expires_at,
    )


@router.post("/invitations/{token}/accept", response_model=ProjectInviteAccepted)
async def accept_project_invitation(
    token: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> ProjectInviteAccepted:
    project, message = project_service.accept_project_invitation(db, auth.user_id, token)
    return ProjectInviteAccepted(project_id=project.id, message=message)
