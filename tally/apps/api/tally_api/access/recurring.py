"""Recurring-entry due-date function and materialization.

is_due() is pure. materialize_if_due() claims the day with a compare-and-set
UPDATE of last_run before creating the entry, so the claim and the entry
land in one transaction and concurrent runs on the same day fire once.

  claim WHERE: id=:id AND (last_run IS NULL OR last_run <> :today)
        SET:   last_run=:today
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from tally_api.db.models import RecurringEntry, TimeEntry
from tally_api.enums import Frequency
from tally_api.utils.timeutil import local_day_start

logger = logging.getLogger(__name__)


def js_weekday(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def is_due(recurring: RecurringEntry, today: date) -> bool:
    """Whether `recurring` should materialize an entry on `today`.

    MONTHLY with a day_of_month past the end of the month (e.g. 31 in
    April) never fires that month.
    """
    if not recurring.active:
        return False
    if recurring.start_date > today:
        return False
    if recurring.end_date is not None and recurring.end_date < today:
        return False
    if recurring.last_run is not None and recurring.last_run == today:
        return False

    if recurring.frequency == Frequency.DAILY:
        return True
    if recurring.frequency == Frequency.WEEKLY:
        return js_weekday(today) in (recurring.days_of_week or [])
    if recurring.frequency == Frequency.MONTHLY:
        return recurring.day_of_month == today.day
    return False


def _claim_day(db: Session, recurring: RecurringEntry, today: date) -> bool:
    result = db.execute(
        update(RecurringEntry)
        .where(
            RecurringEntry.id == recurring.id,
            or_(RecurringEntry.last_run.is_(None), RecurringEntry.last_run != today),
        )
        .values(last_run=today)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def materialize_if_due(db: Session, recurring: RecurringEntry, today: date) -> Optional[TimeEntry]:
    """Create today's entry for `recurring` if due and not yet claimed.

    The caller commits. Returns None when not due or another run won the claim.
    """
    if not is_due(recurring, today):
        return None
    if not _claim_day(db, recurring, today):
        logger.info(
            "Recurring entry already fired today",
            extra={"event": "recurring.claim_lost", "recurring_id": recurring.id},
        )
        return None

    start = local_day_start(today)
    entry = TimeEntry(
        user_id=recurring.user_id,
        project_id=recurring.project_id,
        start_time=start,
        end_time=start + timedelta(seconds=recurring.duration),
        duration=recurring.duration,
        billable=recurring.billable,
        activity=recurring.activity or recurring.name,
        subtask=recurring.subtask,
        description=recurring.description or recurring.name,
        notes=recurring.description,
        tags=list(recurring.tags or []),
    )
    db.add(entry)
    return entry


def run_due_recurring(db: Session, user_id: str, today: date) -> list[TimeEntry]:
    """Fire every due recurring entry of `user_id` in one transaction."""
    candidates = (
        db.query(RecurringEntry)
        .filter(RecurringEntry.user_id == user_id, RecurringEntry.active.is_(True))
        .all()
    )
    created = []
    try:
        for recurring in candidates:
            entry = materialize_if_due(db, recurring, today)
            if entry is not None:
                created.append(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    for entry in created:
        db.refresh(entry)
    logger.info(
        "Recurring entries fired",
        extra={"event": "recurring.fired", "created": len(created), "checked": len(candidates)},
    )
    return created
