"""Time entries: timer, manual and bulk entry, edits, search, comments.

Reads are scoped with access.entries.visible_user_ids_for(); mutations use
can_edit_entry(). The one-running-timer rule is enforced by the partial
unique index on time_entries(user_id) WHERE end_time IS NULL; a losing
insert surfaces as Conflict.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tally_api.access.entries import (
    can_comment_on_entry,
    can_edit_entry,
    can_view_entry,
    visible_user_ids_for,
)
from tally_api.access.errors import BadRequest, Conflict, Forbidden, NotFound, reject_nulls
from tally_api.access.projects import get_accessible_project
from tally_api.access.tags import filter_valid_tags
from tally_api.db.models import EntryComment, Project, Task, TimeEntry
from tally_api.utils.timeutil import as_utc, local_day_end, local_day_start, local_today, utcnow

logger = logging.getLogger(__name__)

MAX_BULK_ENTRIES = 50
DEFAULT_SEARCH_LIMIT = 50
MAX_SEARCH_LIMIT = 100
_REQUIRED_ON_UPDATE = ("project_id", "billable", "start_time")


@dataclass
class EntryFields:
    """Optional descriptive fields shared by every way of creating an entry."""

    task_id: Optional[str] = None
    description: Optional[str] = None
    activity: Optional[str] = None
    subtask: Optional[str] = None
    notes: Optional[str] = None
    billable: bool = True
    tags: list[str] = field(default_factory=list)


def _seconds_between(start: datetime, end: datetime) -> int:
    return int((as_utc(end) - as_utc(start)).total_seconds())


def _check_task(db: Session, project: Project, task_id: Optional[str]) -> Optional[str]:
    if task_id is None:
        return None
    task = db.get(Task, task_id)
    if task is None or task.project_id != project.id:
        raise NotFound("Task not found")
    return task.id


def _new_entry(user_id: str, project: Project, fields: EntryFields, **times: Any) -> TimeEntry:
    return TimeEntry(
        user_id=user_id,
        project_id=project.id,
        task_id=fields.task_id,
        description=fields.description,
        activity=fields.activity,
        subtask=fields.subtask,
        notes=fields.notes,
        billable=fields.billable,
        tags=filter_valid_tags(fields.tags),
        **times,
    )


def _day_window(query, start_date: Optional[date], end_date: Optional[date]):
    if start_date:
        query = query.filter(TimeEntry.start_time >= local_day_start(start_date, hour=0))
    if end_date:
        query = query.filter(TimeEntry.start_time <= local_day_end(end_date))
    return query


def list_entries(
    db: Session,
    user_id: str,
    all_members: bool = False,
    target_user_id: Optional[str] = None,
    project_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[TimeEntry]:
    user_ids = visible_user_ids_for(db, user_id, all_members=all_members, target_user_id=target_user_id)
    query = db.query(TimeEntry).filter(TimeEntry.user_id.in_(user_ids))
    if project_id:
        query = query.filter(TimeEntry.project_id == project_id)
    query = _day_window(query, start_date, end_date)
    return query.order_by(TimeEntry.start_time.desc()).all()


def get_active_entry(db: Session, user_id: str) -> Optional[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.user_id == user_id, TimeEntry.end_time.is_(None))
        .first()
    )


def start_timer(db: Session, user_id: str, project_id: str, fields: EntryFields) -> TimeEntry:
    """Start a running entry now.

    Raises:
        NotFound: Project or task not visible
        Conflict: A timer is already running for this user
    """
    project = get_accessible_project(db, user_id, project_id)
    fields.task_id = _check_task(db, project, fields.task_id)

    if get_active_entry(db, user_id) is not None:
        raise Conflict("A timer is already running")

    entry = _new_entry(user_id, project, fields, start_time=utcnow())
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            "Concurrent timer start rejected",
            extra={"event": "timer.start.conflict", "project_id": project.id},
        )
        raise Conflict("A timer is already running")

    db.refresh(entry)
    logger.info(
        "Timer started",
        extra={"event": "timer.started", "entry_id": entry.id, "project_id": project.id},
    )
    return entry


def stop_timer(db: Session, user_id: str) -> TimeEntry:
    entry = get_active_entry(db, user_id)
    if entry is None:
        raise NotFound("No running timer")

    now = utcnow()
    entry.end_time = now
    entry.duration = max(0, _seconds_between(entry.start_time, now))
    db.commit()
    db.refresh(entry)
    logger.info(
        "Timer stopped",
        extra={"event": "timer.stopped", "entry_id": entry.id, "duration": entry.duration},
    )
    return entry


def create_manual_entry(
    db: Session,
    user_id: str,
    project_id: str,
    fields: EntryFields,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    duration: Optional[int] = None,
    day: Optional[date] = None,
) -> TimeEntry:
    """Record a finished entry.

    Either start_time/end_time, or `duration` seconds starting 09:00 local
    on `day` (default today).
    """
    project = get_accessible_project(db, user_id, project_id)
    fields.task_id = _check_task(db, project, fields.task_id)

    if start_time is not None and end_time is not None:
        seconds = _seconds_between(start_time, end_time)
        if seconds <= 0:
            raise BadRequest("End time must be after start time")
        start, end = as_utc(start_time), as_utc(end_time)
    elif duration is not None and duration > 0:
        seconds = duration
        start = local_day_start(day or local_today())
        end = start + timedelta(seconds=seconds)
    else:
        raise BadRequest("Provide start and end times, or a positive duration")

    entry = _new_entry(user_id, project, fields, start_time=start, end_time=end, duration=seconds)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(
        "Manual entry created",
        extra={"event": "entry.created", "entry_id": entry.id, "project_id": project.id},
    )
    return entry


@dataclass
class BulkItem:
    project_id: str
    duration: int
    day: Optional[date] = None
    fields: EntryFields = field(default_factory=EntryFields)


def create_bulk_entries(db: Session, user_id: str, items: list[BulkItem]) -> list[TimeEntry]:
    """Create up to 50 entries in one transaction, each at 09:00 local.

    Every referenced project must be visible; one invisible project fails
    the whole batch with NotFound.
    """
    if not items:
        return []
    if len(items) > MAX_BULK_ENTRIES:
        raise BadRequest(f"At most {MAX_BULK_ENTRIES} entries per request")

    projects: dict[str, Project] = {}
    for item in items:
        if item.project_id not in projects:
            projects[item.project_id] = get_accessible_project(db, user_id, item.project_id)

    created = []
    try:
        for item in items:
            project = projects[item.project_id]
            item.fields.task_id = _check_task(db, project, item.fields.task_id)
            start = local_day_start(item.day or local_today())
            entry = _new_entry(
                user_id,
                project,
                item.fields,
                start_time=start,
                end_time=start + timedelta(seconds=item.duration),
                duration=item.duration,
            )
            db.add(entry)
            created.append(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    for entry in created:
        db.refresh(entry)
    logger.info("Bulk entries created", extra={"event": "entry.bulk_created", "count": len(created)})
    return created


def search_entries(
    db: Session,
    user_id: str,
    text: str = "",
    project_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    tags: Optional[list[str]] = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> list[TimeEntry]:
    """Search the caller's own entries. limit is capped at 100."""
    limit = max(1, min(limit, MAX_SEARCH_LIMIT))
    query = db.query(TimeEntry).filter(TimeEntry.user_id == user_id)
    if text:
        pattern = f"%{text}%"
        query = query.filter(
            or_(
                TimeEntry.activity.ilike(pattern),
                TimeEntry.subtask.ilike(pattern),
                TimeEntry.notes.ilike(pattern),
                TimeEntry.description.ilike(pattern),
            )
        )
    if project_id:
        query = query.filter(TimeEntry.project_id == project_id)
    query = _day_window(query, start_date, end_date).order_by(TimeEntry.start_time.desc())

    wanted = set(filter_valid_tags(tags))
    if not wanted:
        return query.limit(limit).all()
    # JSON tag lists are matched in Python to stay portable across databases
    matches = [e for e in query.all() if wanted.intersection(e.tags or [])]
    return matches[:limit]


def _load_entry(db: Session, entry_id: str) -> tuple[TimeEntry, Project]:
    entry = db.get(TimeEntry, entry_id)
    if entry is None:
        raise NotFound("Entry not found")
    return entry, db.get(Project, entry.project_id)


def get_entry(db: Session, user_id: str, entry_id: str) -> TimeEntry:
    entry, project = _load_entry(db, entry_id)
    if not can_view_entry(db, user_id, entry, project):
        raise NotFound("Entry not found")
    return entry


def _load_editable(db: Session, user_id: str, entry_id: str) -> tuple[TimeEntry, Project]:
    entry, project = _load_entry(db, entry_id)
    if not can_edit_entry(user_id, entry, project):
        if can_view_entry(db, user_id, entry, project):
            raise Forbidden("You can only edit your own entries or entries in projects you own")
        raise NotFound("Entry not found")
    return entry, project


def update_entry(db: Session, user_id: str, entry_id: str, changes: dict[str, Any]) -> TimeEntry:
    entry, project = _load_editable(db, user_id, entry_id)
    reject_nulls(changes, _REQUIRED_ON_UPDATE)

    if "project_id" in changes and changes["project_id"] != entry.project_id:
        project = get_accessible_project(db, user_id, changes["project_id"])
        entry.project_id = project.id
        if "task_id" not in changes:
            entry.task_id = None
    if "task_id" in changes:
        entry.task_id = _check_task(db, project, changes["task_id"])
    for name in ("description", "activity", "subtask", "notes", "billable"):
        if name in changes:
            setattr(entry, name, changes[name])
    if "tags" in changes:
        entry.tags = filter_valid_tags(changes["tags"])

    if "start_time" in changes and changes["start_time"] is not None:
        entry.start_time = as_utc(changes["start_time"])
    if "end_time" in changes and changes["end_time"] is not None:
        entry.end_time = as_utc(changes["end_time"])
    if entry.end_time is not None:
        seconds = _seconds_between(entry.start_time, entry.end_time)
        if seconds < 0:
            db.rollback()
            raise BadRequest("End time must be after start time")
        entry.duration = seconds

    db.commit()
    db.refresh(entry)
    logger.info("Entry updated", extra={"event": "entry.updated", "entry_id": entry.id})
    return entry


def delete_entry(db: Session, user_id: str, entry_id: str) -> None:
    entry, _ = _load_editable(db, user_id, entry_id)
    db.delete(entry)
    db.commit()
    logger.info("Entry deleted", extra={"event": "entry.deleted", "entry_id": entry_id})


def duplicate_entry(db: Session, user_id: str, entry_id: str, day: Optional[date] = None) -> TimeEntry:
    """Copy one of the caller's own entries to 09:00 local on `day` (default today)."""
    entry, project = _load_entry(db, entry_id)
    if entry.user_id != user_id:
        if can_view_entry(db, user_id, entry, project):
            raise Forbidden("You can only duplicate your own entries")
        raise NotFound("Entry not found")

    start = local_day_start(day or local_today())
    seconds = entry.duration or 0
    copy = TimeEntry(
        user_id=user_id,
        project_id=entry.project_id,
        task_id=entry.task_id,
        description=entry.description,
        activity=entry.activity,
        subtask=entry.subtask,
        notes=entry.notes,
        billable=entry.billable,
        tags=list(entry.tags or []),
        start_time=start,
        end_time=start + timedelta(seconds=seconds),
        duration=seconds,
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)
    logger.info(
        "Entry duplicated",
        extra={"event": "entry.duplicated", "entry_id": copy.id, "source_entry_id": entry.id},
    )
    return copy


def _load_commentable(db: Session, user_id: str, entry_id: str) -> TimeEntry:
    entry, project = _load_entry(db, entry_id)
    if not can_comment_on_entry(db, user_id, entry, project):
        raise NotFound("Entry not found")
    return entry


def list_comments(db: Session, user_id: str, entry_id: str) -> list[EntryComment]:
    entry = _load_commentable(db, user_id, entry_id)
    return (
        db.query(EntryComment)
        .filter(EntryComment.entry_id == entry.id)
        .order_by(EntryComment.created_at.asc())
        .all()
    )


def add_comment(db: Session, user_id: str, entry_id: str, content: str) -> EntryComment:
    entry = _load_commentable(db, user_id, entry_id)
    comment = EntryComment(content=content.strip(), user_id=user_id, entry_id=entry.id)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment
