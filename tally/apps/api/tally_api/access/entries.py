"""Time-entry visibility rule.

visible_user_ids_for() scopes read queries. Mutations use the independent
can_edit_entry(): own entries, or any entry in a project you own.
"""

from typing import Optional

from sqlalchemy.orm import Session

from tally_api.access.errors import Forbidden
from tally_api.access.membership import get_org_user_ids, get_user_org_id
from tally_api.access.projects import can_access_project
from tally_api.db.models import Project, ProjectMember, TimeEntry


def visible_user_ids_for(
    db: Session,
    user_id: str,
    all_members: bool = False,
    target_user_id: Optional[str] = None,
) -> set[str]:
    """Resolve whose entries `user_id` may read.

    Args:
        db: Database session
        user_id: Requesting user
        all_members: Ask for the whole organization (no-op without one)
        target_user_id: Ask for one specific user's entries

    Returns:
        Set of user ids the read query is scoped to

    Raises:
        Forbidden: target_user_id is outside the requester's reach
    """
    org_id = get_user_org_id(db, user_id)

    if all_members and org_id:
        return get_org_user_ids(db, user_id)

    if target_user_id and target_user_id != user_id:
        if org_id:
            if target_user_id in get_org_user_ids(db, user_id):
                return {target_user_id}
            raise Forbidden("User is not in your organization")

        # No organization: only members of a project the requester owns
        shared = (
            db.query(ProjectMember.id)
            .join(Project, Project.id == ProjectMember.project_id)
            .filter(Project.owner_id == user_id, ProjectMember.user_id == target_user_id)
            .first()
        )
        if shared is None:
            raise Forbidden("You can only view entries of members of your projects")
        return {target_user_id}

    return {user_id}


def can_edit_entry(user_id: str, entry: TimeEntry, project: Project) -> bool:
    return entry.user_id == user_id or project.owner_id == user_id


def can_view_entry(db: Session, user_id: str, entry: TimeEntry, project: Project) -> bool:
    """Single-entry read: editors, plus anyone sharing the owner's organization."""
    if can_edit_entry(user_id, entry, project):
        return True
    return entry.user_id in get_org_user_ids(db, user_id)


def can_comment_on_entry(db: Session, user_id: str, entry: TimeEntry, project: Project) -> bool:
    """Comment threads follow the project's visibility."""
    return entry.user_id == user_id or can_access_project(db, user_id, project)
