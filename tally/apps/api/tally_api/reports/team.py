"""Team views over the projects the caller owns.

Both views use the project write rule: only owned projects contribute,
whatever the caller's organization role.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from tally_api.db.models import Project, ProjectMember, TimeEntry, User
from tally_api.reports.summary import finished_entries
from tally_api.utils.timeutil import local_day_end, local_day_start, local_today

DASHBOARD_DEFAULT_DAYS = 7
DASHBOARD_ENTRY_LIMIT = 100
OVERVIEW_RECENT_LIMIT = 20


@dataclass
class MemberStats:
    user_id: str
    name: str
    email: str
    projects: list[Project] = field(default_factory=list)
    total_seconds: int = 0
    billable_seconds: int = 0
    entry_count: int = 0
    per_project: dict[str, int] = field(default_factory=dict)


@dataclass
class TeamOverview:
    projects: list[tuple[Project, int]]
    members: list[MemberStats]
    recent_entries: list[TimeEntry]
    total_hours: float = 0.0
    billable_hours: float = 0.0
    total_value: float = 0.0


@dataclass
class TeamDashboard:
    projects: list[Project]
    members: list[MemberStats]
    entries: list[TimeEntry]
    start_date: date
    end_date: date


def _owned_projects(db: Session, user_id: str) -> list[Project]:
    return db.query(Project).filter(Project.owner_id == user_id).order_by(Project.name.asc()).all()


def _memberships(db: Session, project_ids: list[str]) -> list[tuple[ProjectMember, User]]:
    if not project_ids:
        return []
    return (
        db.query(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .filter(ProjectMember.project_id.in_(project_ids))
        .all()
    )


def team_overview(
    db: Session,
    user_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> TeamOverview:
    """Members, hours and billable value across the caller's projects."""
    projects = _owned_projects(db, user_id)
    by_id = {p.id: p for p in projects}
    memberships = _memberships(db, list(by_id))

    members: dict[str, MemberStats] = {}
    member_counts: dict[str, int] = {p.id: 0 for p in projects}
    for membership, user in memberships:
        stats = members.setdefault(
            user.id, MemberStats(user_id=user.id, name=user.name or user.email, email=user.email)
        )
        stats.projects.append(by_id[membership.project_id])
        member_counts[membership.project_id] += 1

    rows = finished_entries(db, None, start_date, end_date, project_ids=list(by_id)) if projects else []
    overview = TeamOverview(
        projects=[(p, member_counts[p.id]) for p in projects],
        members=list(members.values()),
        recent_entries=[e for e, _ in reversed(rows)][:OVERVIEW_RECENT_LIMIT],
    )
    total = billable = value = 0.0
    for entry, project in rows:
        hours = (entry.duration or 0) / 3600
        total += hours
        stats = members.get(entry.user_id)
        if stats is not None:
            stats.total_seconds += entry.duration or 0
            stats.entry_count += 1
        if entry.billable:
            billable += hours
            if stats is not None:
                stats.billable_seconds += entry.duration or 0
            if project.hourly_rate:
                value += hours * project.hourly_rate

    overview.total_hours = round(total, 2)
    overview.billable_hours = round(billable, 2)
    overview.total_value = round(value, 2)
    return overview


def team_dashboard(
    db: Session,
    user_id: str,
    project_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> TeamDashboard:
    """Per-member totals over a date range (default: the last 7 days).

    A project_id the caller does not own yields an empty dashboard.
    """
    end_date = end_date or local_today()
    start_date = start_date or end_date - timedelta(days=DASHBOARD_DEFAULT_DAYS)

    projects = _owned_projects(db, user_id)
    project_ids = [p.id for p in projects]
    if project_id:
        project_ids = [pid for pid in project_ids if pid == project_id]

    me = db.get(User, user_id)
    members: dict[str, MemberStats] = {
        user_id: MemberStats(
            user_id=user_id,
            name=(me.name if me and me.name else "You"),
            email=me.email if me else "",
        )
    }
    for _, user in _memberships(db, project_ids):
        members.setdefault(
            user.id, MemberStats(user_id=user.id, name=user.name or user.email, email=user.email)
        )

    entries: list[TimeEntry] = []
    if project_ids:
        entries = (
            db.query(TimeEntry)
            .filter(
                TimeEntry.project_id.in_(project_ids),
                TimeEntry.start_time >= local_day_start(start_date, hour=0),
                TimeEntry.start_time <= local_day_end(end_date),
            )
            .order_by(TimeEntry.start_time.desc())
            .all()
        )

    for entry in entries:
        stats = members.get(entry.user_id)
        if stats is None:
            user = db.get(User, entry.user_id)
            stats = members[entry.user_id] = MemberStats(
                user_id=entry.user_id,
                name=(user.name or user.email) if user else "Unknown",
                email=user.email if user else "",
            )
        seconds = entry.duration or 0
        stats.total_seconds += seconds
        stats.entry_count += 1
        if entry.billable:
            stats.billable_seconds += seconds
        stats.per_project[entry.project_id] = stats.per_project.get(entry.project_id, 0) + seconds

    return TeamDashboard(
        projects=[p for p in projects if p.id in project_ids],
        members=list(members.values()),
        entries=entries[:DASHBOARD_ENTRY_LIMIT],
        start_date=start_date,
        end_date=end_date,
    )
