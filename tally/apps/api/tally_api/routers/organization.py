"""Organization endpoints.

Endpoints:
- GET/POST/PUT/DELETE /v1/organization
- GET /v1/organization/members
- PUT/DELETE /v1/organization/members/{member_id}
- GET/POST /v1/organization/invitations
- DELETE /v1/organization/invitations/{invitation_id}

Authorization is decided by the role authority rule (access.roles) inside
orgs.lifecycle; these handlers only shape requests and responses.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.models import Organization, TimeEntry, User
from tally_api.db.session import get_db
from tally_api.orgs import lifecycle
from tally_api.schemas import (
    MessageResponse,
    OrganizationCreateRequest,
    OrganizationResponse,
    OrganizationUpdateRequest,
    OrgInvitationResponse,
    OrgInviteCreatedResponse,
    OrgInviteRequest,
    OrgMemberResponse,
    RoleChangeRequest,
)

router = APIRouter(prefix="/v1/organization", tags=["organization"])
logger = logging.getLogger(__name__)


def _org_response(db: Session, org: Organization, user_id: str) -> OrganizationResponse:
    user = db.get(User, user_id)
    member_count = db.query(func.count(User.id)).filter(User.organization_id == org.id).scalar()
    return OrganizationResponse(
        id=org.id,
        name=org.name,
        owner_id=org.owner_id,
        created_at=org.created_at,
        role=user.org_role if user else None,
        member_count=member_count,
    )


@router.get("", response_model=Optional[OrganizationResponse])
async def get_organization(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> Optional[OrganizationResponse]:
    """Caller's organization, or null when they have none."""
    org = lifecycle.get_organization(db, auth.user_id)
    return _org_response(db, org, auth.user_id) if org else None


@router.post("", status_code=status.HTTP_201_CREATED, response_model=OrganizationResponse)
async def create_organization(
    request: OrganizationCreateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> OrganizationResponse:
    org = lifecycle.create_organization(db, auth.user_id, request.name)
    return _org_response(db, org, auth.user_id)


@router.put("", response_model=OrganizationResponse)
async def update_organization(
    request: OrganizationUpdateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> OrganizationResponse:
    org = lifecycle.update_organization(db, auth.user_id, request.name)
    return _org_response(db, org, auth.user_id)


@router.delete("", response_model=MessageResponse)
async def delete_organization(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    lifecycle.delete_organization(db, auth.user_id)
    return MessageResponse(message="Organization deleted")


@router.get("/members", response_model=list[OrgMemberResponse])
async def list_members(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[OrgMemberResponse]:
    members = lifecycle.list_members(db, auth.user_id)
    counts = dict(
        db.query(TimeEntry.user_id, func.count(TimeEntry.id))
        .filter(TimeEntry.user_id.in_([m.id for m in members]))
        .group_by(TimeEntry.user_id)
        .all()
    )
    return [
        OrgMemberResponse(
            id=m.id,
            name=m.name,
            email=m.email,
            org_role=m.org_role,
            entry_count=counts.get(m.id, 0),
        )
        for m in members
    ]


@router.put("/members/{member_id}", response_model=OrgMemberResponse)
async def change_member_role(
    member_id: str,
    request: RoleChangeRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> OrgMemberResponse:
    member = lifecycle.change_member_role(db, auth.user_id, member_id, request.role)
    return OrgMemberResponse(id=member.id, name=member.name, email=member.email, org_role=member.org_role)


@router.delete("/members/{member_id}", response_model=MessageResponse)
async def remove_member(
    member_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    lifecycle.remove_member(db, auth.user_id, member_id)
    return MessageResponse(message="Left organization" if member_id == auth.user_id else "Member removed")


@router.get("/invitations", response_model=list[OrgInvitationResponse])
async def list_invitations(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[OrgInvitationResponse]:
    return [
        OrgInvitationResponse.model_validate(inv)
        for inv in lifecycle.list_pending_invitations(db, auth.user_id)
    ]


@router.post("/invitations", status_code=status.HTTP_201_CREATED, response_model=OrgInviteCreatedResponse)
async def invite_member(
    request: OrgInviteRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> OrgInviteCreatedResponse:
    """Invite a member. The invite URL is returned even if email delivery fails."""
    result = lifecycle.invite_member(db, auth.user_id, request.email, request.role)
    return OrgInviteCreatedResponse(
        invitation=OrgInvitationResponse.model_validate(result.invitation),
        invite_url=result.invite_url,
        email_sent=result.email.success,
    )


@router.delete("/invitations/{invitation_id}", response_model=MessageResponse)
async def cancel_invitation(
    invitation_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    lifecycle.cancel_invitation(db, auth.user_id, invitation_id)
    return MessageResponse(message="Invitation cancelled")
