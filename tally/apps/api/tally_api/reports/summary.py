"""Per-user time reports and CSV export.

Totals only count finished entries (end_time set). Scoping follows the
time-entry visibility rule, so all_members/target_user_id behave exactly
as they do for entry listing.
"""

import csv
import io
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from tally_api.access.entries import visible_user_ids_for
from tally_api.db.models import Project, Task, TimeEntry
from tally_api.utils.timeutil import as_utc, local_day_end, local_day_start, local_tz

CSV_HEADERS = ["Date", "Project", "Task", "Description", "Start Time", "End Time", "Duration"]


@dataclass
class ProjectTotal:
    project_id: str
    name: str
    color: str
    total_duration: int = 0
    entry_count: int = 0


@dataclass
class Report:
    projects: list[ProjectTotal] = field(default_factory=list)
    daily: list[tuple[date, int]] = field(default_factory=list)
    total_duration: int = 0
    total_entries: int = 0


def finished_entries(
    db: Session,
    user_ids: Optional[set[str]],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    project_id: Optional[str] = None,
    project_ids: Optional[list[str]] = None,
) -> list[tuple[TimeEntry, Project]]:
    query = (
        db.query(TimeEntry, Project)
        .join(Project, Project.id == TimeEntry.project_id)
        .filter(TimeEntry.end_time.is_not(None))
    )
    if user_ids is not None:
        query = query.filter(TimeEntry.user_id.in_(user_ids))
    if project_id:
        query = query.filter(TimeEntry.project_id == project_id)
    if project_ids is not None:
        query = query.filter(TimeEntry.project_id.in_(project_ids))
    if start_date:
        query = query.filter(TimeEntry.start_time >= local_day_start(start_date, hour=0))
    if end_date:
        query = query.filter(TimeEntry.start_time <= local_day_end(end_date))
    return query.order_by(TimeEntry.start_time.asc()).all()


def _local_date(entry: TimeEntry) -> date:
    return as_utc(entry.start_time).astimezone(local_tz()).date()


def build_report(
    db: Session,
    user_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    project_id: Optional[str] = None,
    all_members: bool = False,
    target_user_id: Optional[str] = None,
) -> Report:
    user_ids = visible_user_ids_for(db, user_id, all_members=all_members, target_user_id=target_user_id)
    rows = finished_entries(db, user_ids, start_date, end_date, project_id)

    report = Report()
    per_project: dict[str, ProjectTotal] = {}
    per_day: dict[date, int] = {}
    for entry, project in rows:
        seconds = entry.duration or 0
        total = per_project.setdefault(
            project.id, ProjectTotal(project_id=project.id, name=project.name, color=project.color)
        )
        total.total_duration += seconds
        total.entry_count += 1
        day = _local_date(entry)
        per_day[day] = per_day.get(day, 0) + seconds
        report.total_duration += seconds

    report.projects = list(per_project.values())
    report.daily = sorted(per_day.items())
    report.total_entries = len(rows)
    return report


def format_duration(seconds: int) -> str:
    hours, rem = divmod(int(seconds), 3600)
    return f"{hours}h {rem // 60}m"


def export_csv(
    db: Session,
    user_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    project_id: Optional[str] = None,
) -> str:
    """The caller's finished entries as CSV, newest first."""
    rows = finished_entries(db, {user_id}, start_date, end_date, project_id)
    task_ids = {e.task_id for e, _ in rows if e.task_id}
    task_names = (
        {t.id: t.name for t in db.query(Task).filter(Task.id.in_(task_ids)).all()} if task_ids else {}
    )

    tz = local_tz()
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry, project in reversed(rows):
        start = as_utc(entry.start_time).astimezone(tz)
        end = as_utc(entry.end_time).astimezone(tz) if entry.end_time else None
        writer.writerow(
            [
                start.date().isoformat(),
                project.name,
                task_names.get(entry.task_id, ""),
                entry.description or "",
                start.strftime("%H:%M:%S"),
                end.strftime("%H:%M:%S") if end else "",
                format_duration(entry.duration or 0),
            ]
        )
    return buf.getvalue()


def tag_usage(db: Session, user_id: str) -> list[tuple[str, int]]:
    """(tag, count) over the caller's entries, most used first."""
    counts: Counter = Counter()
    for (tags,) in db.query(TimeEntry.tags).filter(TimeEntry.user_id == user_id).all():
        counts.update(tags or [])
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))
