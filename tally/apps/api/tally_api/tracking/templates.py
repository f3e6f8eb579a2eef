"""Time templates and recurring entry definitions (owner-scoped)."""

import logging
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from tally_api.access.errors import BadRequest, NotFound, reject_nulls
from tally_api.access.projects import get_accessible_project
from tally_api.access.tags import filter_valid_tags
from tally_api.db.models import Project, RecurringEntry, TimeEntry, TimeTemplate
from tally_api.enums import Frequency
from tally_api.tracking.defaults import seed_project_defaults
from tally_api.utils.timeutil import local_day_start, local_today

logger = logging.getLogger(__name__)

_TEMPLATE_FIELDS = ("name", "activity", "subtask", "description", "duration", "billable")
_RECURRING_FIELDS = (
    "name",
    "activity",
    "subtask",
    "description",
    "duration",
    "billable",
    "frequency",
    "days_of_week",
    "day_of_month",
    "start_date",
    "end_date",
    "active",
)
_REQUIRED_RECURRING_FIELDS = (
    "project_id",
    "name",
    "duration",
    "billable",
    "frequency",
    "days_of_week",
    "start_date",
    "active",
)


# ----------------------------------------------------------------------------
# Templates
# ----------------------------------------------------------------------------


def list_templates(db: Session, user_id: str) -> list[TimeTemplate]:
    return (
        db.query(TimeTemplate)
        .filter(TimeTemplate.user_id == user_id)
        .order_by(TimeTemplate.is_default.desc(), TimeTemplate.name.asc())
        .all()
    )


def create_template(db: Session, user_id: str, project_id: str, values: dict[str, Any]) -> TimeTemplate:
    project = get_accessible_project(db, user_id, project_id)
    template = TimeTemplate(
        user_id=user_id,
        project_id=project.id,
        tags=filter_valid_tags(values.get("tags")),
        is_default=False,
        **{k: values[k] for k in _TEMPLATE_FIELDS if k in values},
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def _own_template(db: Session, user_id: str, template_id: str) -> TimeTemplate:
    template = db.get(TimeTemplate, template_id)
    if template is None or template.user_id != user_id:
        raise NotFound("Template not found")
    return template


def delete_template(db: Session, user_id: str, template_id: str) -> None:
    db.delete(_own_template(db, user_id, template_id))
    db.commit()


def use_template(db: Session, user_id: str, template_id: str, day: Optional[date] = None) -> TimeEntry:
    """Materialize a finished entry from a template at 09:00 local on `day`."""
    template = _own_template(db, user_id, template_id)
    project = get_accessible_project(db, user_id, template.project_id)

    start = local_day_start(day or local_today())
    entry = TimeEntry(
        user_id=user_id,
        project_id=project.id,
        start_time=start,
        end_time=start + timedelta(seconds=template.duration),
        duration=template.duration,
        billable=template.billable,
        activity=template.activity,
        subtask=template.subtask,
        description=template.description,
        tags=list(template.tags or []),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(
        "Template used",
        extra={"event": "template.used", "template_id": template.id, "entry_id": entry.id},
    )
    return entry


def create_default_templates(db: Session, user_id: str) -> tuple[int, int]:
    """Seed defaults into every project the caller owns that lacks them."""
    projects = db.query(Project).filter(Project.owner_id == user_id).all()
    templates_created = recurring_created = 0
    today = local_today()
    for project in projects:
        t, r = seed_project_defaults(db, user_id, project.id, today)
        templates_created += t
        recurring_created += r
    db.commit()
    return templates_created, recurring_created


# ----------------------------------------------------------------------------
# Recurring entries
# ----------------------------------------------------------------------------


def _validate_schedule(recurring: RecurringEntry) -> None:
    if recurring.frequency == Frequency.WEEKLY:
        days = recurring.days_of_week or []
        if not days or any(not isinstance(d, int) or d < 0 or d > 6 for d in days):
            raise BadRequest("WEEKLY schedules need days_of_week between 0 (Sunday) and 6")
        recurring.days_of_week = sorted(set(days))
    elif recurring.frequency == Frequency.MONTHLY:
        if recurring.day_of_month is None or not 1 <= recurring.day_of_month <= 31:
            raise BadRequest("MONTHLY schedules need day_of_month between 1 and 31")
    elif recurring.frequency != Frequency.DAILY:
        raise BadRequest(f"Unknown frequency {recurring.frequency}")
    if recurring.end_date is not None and recurring.end_date < recurring.start_date:
        raise BadRequest("end_date must not be before start_date")
    if recurring.duration is None or recurring.duration <= 0:
        raise BadRequest("duration must be positive")


def list_recurring(db: Session, user_id: str) -> list[RecurringEntry]:
    return (
        db.query(RecurringEntry)
        .filter(RecurringEntry.user_id == user_id)
        .order_by(RecurringEntry.created_at.desc())
        .all()
    )


def create_recurring(db: Session, user_id: str, project_id: str, values: dict[str, Any]) -> RecurringEntry:
    project = get_accessible_project(db, user_id, project_id)
    fields = {k: values[k] for k in _RECURRING_FIELDS if k in values and values[k] is not None}
    fields.setdefault("start_date", local_today())
    recurring = RecurringEntry(
        user_id=user_id,
        project_id=project.id,
        tags=filter_valid_tags(values.get("tags")),
        **fields,
    )
    _validate_schedule(recurring)
    db.add(recurring)
    db.commit()
    db.refresh(recurring)
    logger.info(
        "Recurring entry created",
        extra={"event": "recurring.created", "recurring_id": recurring.id, "frequency": recurring.frequency},
    )
    return recurring


def _own_recurring(db: Session, user_id: str, recurring_id: str) -> RecurringEntry:
    recurring = db.get(RecurringEntry, recurring_id)
    if recurring is None or recurring.user_id != user_id:
        raise NotFound("Recurring entry not found")
    return recurring


def update_recurring(db: Session, user_id: str, recurring_id: str, changes: dict[str, Any]) -> RecurringEntry:
    recurring = _own_recurring(db, user_id, recurring_id)
    reject_nulls(changes, _REQUIRED_RECURRING_FIELDS)
    if "project_id" in changes and changes["project_id"] != recurring.project_id:
        recurring.project_id = get_accessible_project(db, user_id, changes["project_id"]).id
    for name in _RECURRING_FIELDS:
        if name in changes:
            setattr(recurring, name, changes[name])
    if "tags" in changes:
        recurring.tags = filter_valid_tags(changes["tags"])
    try:
        _validate_schedule(recurring)
    except BadRequest:
        db.rollback()
        raise
    db.commit()
    db.refresh(recurring)
    return recurring


def delete_recurring(db: Session, user_id: str, recurring_id: str) -> None:
    db.delete(_own_recurring(db, user_id, recurring_id))
    db.commit()
