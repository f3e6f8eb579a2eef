"""Organization lifecycle: create, invite, accept, change role, remove, delete.

Each operation resolves the actor's standing, asks the role authority rule
(access.roles) for a Decision, enforces it, then applies the change in a
single transaction. Multi-row changes (create, accept, delete) commit or
roll back as a unit.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from tally_api.access import roles
from tally_api.access.errors import Conflict, NotFound, Outcome
from tally_api.access.membership import get_standing
from tally_api.access.roles import Standing
from tally_api.auth.token_lifecycle import generate_invite_token
from tally_api.config.env import get_app_base_url, get_invitation_ttl_days
from tally_api.db.models import OrgInvitation, Organization, Project, User
from tally_api.enums import InvitationStatus, OrgRole
from tally_api.notify.email import EmailResult, send_org_invitation_email
from tally_api.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


@dataclass
class OrgInviteResult:
    invitation: OrgInvitation
    invite_url: str
    email: EmailResult


def org_invite_url(token: str) -> str:
    return f"{get_app_base_url()}/org-invite/{token}"


def _require_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _require_org(db: Session, user: User) -> Organization:
    if not user.organization_id:
        raise NotFound("Not a member of any organization")
    org = db.get(Organization, user.organization_id)
    if org is None:
        raise NotFound("Organization not found")
    return org


def _adopt_owned_projects(db: Session, user_id: str, org_id: str) -> int:
    return (
        db.query(Project)
        .filter(Project.owner_id == user_id)
        .update({Project.organization_id: org_id}, synchronize_session="fetch")
    )


def get_organization(db: Session, user_id: str) -> Optional[Organization]:
    user = db.get(User, user_id)
    if user is None or not user.organization_id:
        return None
    return db.get(Organization, user.organization_id)


def create_organization(db: Session, actor_id: str, name: str) -> Organization:
    """Create an organization owned by the actor.

    The actor becomes OWNER and every project they own moves into it.

    Raises:
        Conflict: Actor already belongs to an organization
    """
    actor = _require_user(db, actor_id)
    roles.can_create_org(Standing.of(actor.organization_id, actor.org_role)).enforce()

    try:
        org = Organization(name=name.strip(), owner_id=actor.id)
        db.add(org)
        db.flush()

        actor.organization_id = org.id
        actor.org_role = OrgRole.OWNER.value
        moved = _adopt_owned_projects(db, actor.id, org.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(org)
    logger.info(
        "Organization created",
        extra={"event": "org.created", "org_id": org.id, "projects_moved": moved},
    )
    return org


def update_organization(db: Session, actor_id: str, name: str) -> Organization:
    actor = _require_user(db, actor_id)
    org = _require_org(db, actor)
    roles.can_update_org(Standing.of(actor.organization_id, actor.org_role)).enforce()

    org.name = name.strip()
    db.commit()
    db.refresh(org)
    logger.info("Organization updated", extra={"event": "org.updated", "org_id": org.id})
    return org


def delete_organization(db: Session, actor_id: str) -> None:
    """Delete the actor's organization (OWNER only).

    Members are reset to MEMBER without an organization, projects are
    detached, and org invitations are deleted. Entries persist.
    """
    actor = _require_user(db, actor_id)
    org = _require_org(db, actor)
    roles.can_delete_org(Standing.of(actor.organization_id, actor.org_role)).enforce()
    org_id = org.id

    try:
        db.query(User).filter(User.organization_id == org_id).update(
            {User.organization_id: None, User.org_role: OrgRole.MEMBER.value},
            synchronize_session="fetch",
        )
        db.query(Project).filter(Project.organization_id == org_id).update(
            {Project.organization_id: None}, synchronize_session="fetch"
        )
        db.query(OrgInvitation).filter(OrgInvitation.organization_id == org_id).delete(
            synchronize_session="fetch"
        )
        db.delete(org)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Organization deleted", extra={"event": "org.deleted", "org_id": org_id})


def list_members(db: Session, actor_id: str) -> list[User]:
    """Members sorted OWNER, ADMIN, MEMBER, then by name."""
    actor = _require_user(db, actor_id)
    org = _require_org(db, actor)
    members = db.query(User).filter(User.organization_id == org.id).all()
    rank = {OrgRole.OWNER.value: 0, OrgRole.ADMIN.value: 1, OrgRole.MEMBER.value: 2}
    return sorted(members, key=lambda u: (rank.get(u.org_role, 3), (u.name or u.email).lower()))


def list_pending_invitations(db: Session, actor_id: str) -> list[OrgInvitation]:
    actor = _require_user(db, actor_id)
    org = _require_org(db, actor)
    return (
        db.query(OrgInvitation)
        .filter(
            OrgInvitation.organization_id == org.id,
            OrgInvitation.status == InvitationStatus.PENDING.value,
        )
        .order_by(OrgInvitation.created_at.desc())
        .all()
    )


def invite_member(db: Session, actor_id: str, email: str, role: str = OrgRole.MEMBER.value) -> OrgInviteResult:
    """Invite `email` into the actor's organization.

    Email delivery is best-effort; the result always carries the invite URL.

    Raises:
        Forbidden: Actor lacks authority over `role`
        Conflict: Email already a member or already has a pending invitation
    """
    actor = _require_user(db, actor_id)
    org = _require_org(db, actor)
    roles.can_invite(Standing.of(actor.organization_id, actor.org_role), role).enforce()

    email = email.strip().lower()
    existing_member = (
        db.query(User.id)
        .filter(User.email == email, User.organization_id == org.id)
        .first()
    )
    if existing_member is not None:
        raise Conflict("User is already a member of this organization")

    pending = (
        db.query(OrgInvitation.id)
        .filter(
            OrgInvitation.email == email,
            OrgInvitation.organization_id == org.id,
            OrgInvitation.status == InvitationStatus.PENDING.value,
        )
        .first()
    )
    if pending is not None:
        raise Conflict("An invitation has already been sent to this email")

    invitation = OrgInvitation(
        email=email,
        role=role,
        token=generate_invite_token(),
        status=InvitationStatus.PENDING.value,
        expires_at=utcnow() + timedelta(days=get_invitation_ttl_days()),
        organization_id=org.id,
        sender_id=actor.id,
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)

    invite_url = org_invite_url(invitation.token)
    email_result = send_org_invitation_email(
        to=email,
        inviter_name=actor.name or actor.email,
        org_name=org.name,
        role=role,
        invite_link=invite_url,
    )

    logger.info(
        "Organization invitation created",
        extra={
            "event": "org.invite.created",
            "org_id": org.id,
            "invitation_id": invitation.id,
            "role": role,
            "email_sent": email_result.success,
        },
    )
    return OrgInviteResult(invitation=invitation, invite_url=invite_url, email=email_result)


def cancel_invitation(db: Session, actor_id: str, invitation_id: str) -> None:
    actor = _require_user(db, actor_id)
    invitation = db.get(OrgInvitation, invitation_id)
    in_actor_org = (
        invitation is not None
        and actor.organization_id is not None
        and invitation.organization_id == actor.organization_id
    )
    org = db.get(Organization, actor.organization_id) if actor.organization_id else None
    roles.can_cancel_invitation(
        actor.id,
        Standing.of(actor.organization_id, actor.org_role),
        org.owner_id if org else None,
        in_actor_org,
    ).enforce()

    db.delete(invitation)
    db.commit()
    logger.info(
        "Organization invitation cancelled",
        extra={"event": "org.invite.cancelled", "invitation_id": invitation_id},
    )


def get_invitation_by_token(db: Session, token: str) -> OrgInvitation:
    """Public preview of a pending, unexpired invitation.

    Raises:
        NotFound: Unknown token
        Conflict: Already accepted
        Expired: Deadline passed or marked EXPIRED
    """
    invitation = db.query(OrgInvitation).filter(OrgInvitation.token == token).first()
    if invitation is None:
        raise NotFound("Invitation not found")
    roles.check_invitation_status(invitation.status, invitation.expires_at, utcnow()).enforce()
    return invitation


def accept_invitation(db: Session, user_id: str, token: str) -> Organization:
    """Accept an org invitation with the invitee's session.

    On success the invitee joins with the invitation's role, their owned
    projects move into the organization, and the invitation is ACCEPTED,
    all in one transaction. A past-deadline invitation is marked EXPIRED.

    Raises:
        NotFound: Unknown token
        Conflict: Already accepted, or invitee already in an organization
        Expired: Deadline passed
    """
    user = _require_user(db, user_id)
    invitation = db.query(OrgInvitation).filter(OrgInvitation.token == token).first()
    if invitation is None:
        raise NotFound("Invitation not found")

    decision = roles.check_org_invitation_acceptable(
        invitation.status,
        invitation.expires_at,
        utcnow(),
        Standing.of(user.organization_id, user.org_role),
    )
    if decision.outcome is Outcome.EXPIRED and invitation.status == InvitationStatus.PENDING:
        invitation.status = InvitationStatus.EXPIRED.value
        db.commit()
    decision.enforce()

    org_id = invitation.organization_id
    try:
        user.organization_id = org_id
        user.org_role = invitation.role
        moved = _adopt_owned_projects(db, user.id, org_id)
        invitation.status = InvitationStatus.ACCEPTED.value
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Organization invitation accepted",
        extra={
            "event": "org.invite.accepted",
            "org_id": org_id,
            "invitation_id": invitation.id,
            "role": invitation.role,
            "projects_moved": moved,
        },
    )
    return db.get(Organization, org_id)


def _target_standing(actor: User, target: Optional[User]) -> Optional[Standing]:
    if target is None or not actor.organization_id or target.organization_id != actor.organization_id:
        return None
    return Standing.of(target.organization_id, target.org_role)


def change_member_role(db: Session, actor_id: str, target_id: str, new_role: str) -> User:
    actor = _require_user(db, actor_id)
    target = db.get(User, target_id)
    roles.can_change_role(
        Standing.of(actor.organization_id, actor.org_role),
        _target_standing(actor, target),
        new_role,
    ).enforce()

    old_role = target.org_role
    target.org_role = new_role
    db.commit()
    db.refresh(target)
    logger.info(
        "Member role changed",
        extra={
            "event": "org.member.role_changed",
            "org_id": actor.organization_id,
            "target_user_id": target.id,
            "old_role": old_role,
            "new_role": new_role,
        },
    )
    return target


def remove_member(db: Session, actor_id: str, target_id: str) -> None:
    """Remove a member, or leave the organization when target_id == actor_id."""
    actor = _require_user(db, actor_id)
    target = db.get(User, target_id)
    org_id = actor.organization_id
    roles.can_remove_member(
        actor.id,
        get_standing(db, actor.id),
        target_id,
        _target_standing(actor, target),
    ).enforce()

    target.organization_id = None
    target.org_role = OrgRole.MEMBER.value
    db.commit()
    logger.info(
        "Member removed",
        extra={
            "event": "org.member.left" if target_id == actor_id else "org.member.removed",
            "org_id": org_id,
            "target_user_id": target_id,
        },
    )
