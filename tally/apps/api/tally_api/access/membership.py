"""Identity & membership resolver.

Pure lookups keyed by an explicit user id. A missing user resolves to
"no organization" rather than an error.
"""

from typing import Optional

from sqlalchemy.orm import Session

from tally_api.access.roles import Standing
from tally_api.db.models import User
from tally_api.enums import OrgRole


def _get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def get_user_org_id(db: Session, user_id: str) -> Optional[str]:
    user = _get_user(db, user_id)
    return user.organization_id if user else None


def get_org_user_ids(db: Session, user_id: str) -> set[str]:
    """All users sharing the caller's organization, caller included.

    Returns {user_id} alone when the caller has no organization.
    """
    org_id = get_user_org_id(db, user_id)
    if not org_id:
        return {user_id}
    rows = db.query(User.id).filter(User.organization_id == org_id).all()
    return {row.id for row in rows} | {user_id}


def get_standing(db: Session, user_id: str) -> Standing:
    user = _get_user(db, user_id)
    if user is None:
        return Standing.NOT_MEMBER
    return Standing.of(user.organization_id, user.org_role)


def is_org_admin(db: Session, user_id: str) -> bool:
    user = _get_user(db, user_id)
    return bool(
        user
        and user.organization_id
        and user.org_role in (OrgRole.OWNER, OrgRole.ADMIN)
    )


def is_org_owner(db: Session, user_id: str) -> bool:
    user = _get_user(db, user_id)
    return bool(user and user.organization_id and user.org_role == OrgRole.OWNER)
