"""Role authority rule for organization management.

A user's standing is totally ordered: NOT_MEMBER < MEMBER < ADMIN < OWNER.
Every management decision goes through has_authority_over(): the actor must
be ADMIN or OWNER and strictly outrank the role being acted on (the invited
role, or the target's current role). The functions here are pure; they
return a Decision and never touch the database.
"""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from tally_api.access.errors import Decision
from tally_api.enums import InvitationStatus, OrgRole
from tally_api.utils.timeutil import as_utc


class Standing(IntEnum):
    NOT_MEMBER = 0
    MEMBER = 1
    ADMIN = 2
    OWNER = 3

    @classmethod
    def of(cls, organization_id: Optional[str], org_role: Optional[str]) -> "Standing":
        """Standing from a user's organization_id and org_role columns."""
        if not organization_id:
            return cls.NOT_MEMBER
        return cls[OrgRole(org_role or OrgRole.MEMBER).value]

    @classmethod
    def for_role(cls, role: str) -> "Standing":
        return cls[OrgRole(role).value]


ASSIGNABLE_ROLES = frozenset({OrgRole.ADMIN, OrgRole.MEMBER})


def has_authority_over(actor: Standing, role: Standing) -> bool:
    """True iff actor is ADMIN/OWNER and strictly outranks `role`."""
    return actor >= Standing.ADMIN and actor > role


def can_create_org(actor: Standing) -> Decision:
    if actor is not Standing.NOT_MEMBER:
        return Decision.conflict("You are already a member of an organization")
    return Decision.allow()


def can_update_org(actor: Standing) -> Decision:
    if actor < Standing.ADMIN:
        return Decision.forbid("Only admins can update the organization")
    return Decision.allow()


def can_invite(actor: Standing, role: str) -> Decision:
    """Invite a new member with `role` (ADMIN or MEMBER)."""
    if actor < Standing.ADMIN:
        return Decision.forbid("Only admins can invite members")
    if role not in ASSIGNABLE_ROLES:
        return Decision.forbid(f"Cannot invite with role {role}")
    if not has_authority_over(actor, Standing.for_role(role)):
        return Decision.forbid("Only the owner can invite admins")
    return Decision.allow()


def can_change_role(
    actor: Standing,
    target: Optional[Standing],
    new_role: str,
) -> Decision:
    """Change a member's role.

    Args:
        actor: Standing of the acting user
        target: Standing of the target within the actor's organization,
            None when the target is not a member of it
        new_role: Requested role (ADMIN or MEMBER)
    """
    if actor < Standing.ADMIN:
        return Decision.forbid("Only admins can change member roles")
    if target is None or target is Standing.NOT_MEMBER:
        return Decision.not_found("Member not found")
    if target is Standing.OWNER:
        return Decision.forbid("The owner's role cannot be changed")
    if new_role not in ASSIGNABLE_ROLES:
        return Decision.forbid(f"Cannot assign role {new_role}")
    if not has_authority_over(actor, target):
        return Decision.forbid("Only the owner can change an admin's role")
    return Decision.allow()


def can_remove_member(
    actor_id: str,
    actor: Standing,
    target_id: str,
    target: Optional[Standing],
) -> Decision:
    """Remove a member, or leave when target_id == actor_id."""
    if target_id == actor_id:
        if actor is Standing.NOT_MEMBER:
            return Decision.not_found("Member not found")
        if actor is Standing.OWNER:
            return Decision.forbid("The owner cannot leave; delete the organization instead")
        return Decision.allow()

    if actor < Standing.ADMIN:
        return Decision.forbid("Only admins can remove members")
    if target is None or target is Standing.NOT_MEMBER:
        return Decision.not_found("Member not found")
    if target is Standing.OWNER:
        return Decision.forbid("The owner cannot be removed")
    if not has_authority_over(actor, target):
        return Decision.forbid("Only the owner can remove an admin")
    return Decision.allow()


def can_delete_org(actor: Standing) -> Decision:
    if actor is not Standing.OWNER:
        return Decision.forbid("Only the owner can delete the organization")
    return Decision.allow()


def can_cancel_invitation(
    actor_id: str,
    actor: Standing,
    org_owner_id: Optional[str],
    invitation_in_actor_org: bool,
) -> Decision:
    if not invitation_in_actor_org:
        return Decision.not_found("Invitation not found")
    if org_owner_id != actor_id and actor < Standing.ADMIN:
        return Decision.forbid("Only admins can cancel invitations")
    return Decision.allow()


def check_invitation_status(status: str, expires_at: datetime, now: datetime) -> Decision:
    """Single-use + deadline check shared by org and project invitations."""
    if status == InvitationStatus.ACCEPTED:
        return Decision.conflict("Invitation has already been accepted")
    if status == InvitationStatus.EXPIRED or as_utc(expires_at) < as_utc(now):
        return Decision.expired("Invitation has expired")
    return Decision.allow()


def check_org_invitation_acceptable(
    status: str,
    expires_at: datetime,
    now: datetime,
    invitee: Standing,
) -> Decision:
    decision = check_invitation_status(status, expires_at, now)
    if not decision:
        return decision
    if invitee is not Standing.NOT_MEMBER:
        return Decision.conflict(
            "You are already a member of an organization. Leave it first."
        )
    return Decision.allow()
