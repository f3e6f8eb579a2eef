"""Project access rule.

Read access: owner, explicit ProjectMember, or same organization.
Write access (rename, archive, delete, settings, member management, team
reports): owner only. Membership of either kind never grants write access.
"""

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Query, Session

from tally_api.access.errors import Forbidden, NotFound
from tally_api.access.membership import get_user_org_id
from tally_api.db.models import Project, ProjectMember


def is_project_member(db: Session, user_id: str, project_id: str) -> bool:
    return (
        db.query(ProjectMember.id)
        .filter(ProjectMember.user_id == user_id, ProjectMember.project_id == project_id)
        .first()
        is not None
    )


def can_access_project(db: Session, user_id: str, project: Project) -> bool:
    if project.owner_id == user_id:
        return True
    if is_project_member(db, user_id, project.id):
        return True
    org_id = get_user_org_id(db, user_id)
    return project.organization_id is not None and project.organization_id == org_id


def can_modify_project(user_id: str, project: Project) -> bool:
    return project.owner_id == user_id


def visible_projects_query(db: Session, user_id: str) -> Query:
    """Query of every project `user_id` can read (same rule as can_access_project)."""
    member_project_ids = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    clauses = [Project.owner_id == user_id, Project.id.in_(member_project_ids)]
    org_id = get_user_org_id(db, user_id)
    if org_id:
        clauses.append(Project.organization_id == org_id)
    return db.query(Project).filter(or_(*clauses))


def get_accessible_project(db: Session, user_id: str, project_id: str) -> Project:
    """Load a readable project.

    Raises:
        NotFound: Project missing or invisible to the caller (no existence leak)
    """
    project: Optional[Project] = db.get(Project, project_id)
    if project is None or not can_access_project(db, user_id, project):
        raise NotFound("Project not found")
    return project


def get_modifiable_project(db: Session, user_id: str, project_id: str) -> Project:
    """Load a project the caller owns.

    Raises:
        NotFound: Project missing or invisible to the caller
        Forbidden: Visible but not owned by the caller
    """
    project = get_accessible_project(db, user_id, project_id)
    if not can_modify_project(user_id, project):
        raise Forbidden("Only the project owner can do this")
    return project
