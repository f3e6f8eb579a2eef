"""Starter templates and recurring entry seeded into new projects."""

from datetime import date

from sqlalchemy.orm import Session

from tally_api.db.models import RecurringEntry, TimeTemplate
from tally_api.enums import Frequency

DEFAULT_TEMPLATES = (
    {
        "name": "Meeting",
        "activity": "Meeting",
        "subtask": None,
        "description": "Team meeting or client call",
        "tags": ["meeting"],
        "duration": 3600,
        "billable": True,
    },
    {
        "name": "Quick Sync",
        "activity": "Meeting",
        "subtask": "Quick sync",
        "description": "Short sync-up call",
        "tags": ["meeting", "sync"],
        "duration": 900,
        "billable": True,
    },
)

DAILY_STANDUP = {
    "name": "Daily Standup",
    "activity": "Meeting",
    "subtask": "Daily standup",
    "description": "Daily team standup meeting",
    "tags": ["meeting", "standup", "daily"],
    "duration": 900,
    "billable": False,
    "frequency": Frequency.WEEKLY.value,
    "days_of_week": [1, 2, 3, 4, 5],
}


def seed_project_defaults(db: Session, user_id: str, project_id: str, today: date) -> tuple[int, int]:
    """Add the default templates and the Mon-Fri standup if missing.

    Returns:
        (templates_created, recurring_created). Caller commits.
    """
    templates_created = 0
    recurring_created = 0

    has_templates = (
        db.query(TimeTemplate.id)
        .filter(
            TimeTemplate.project_id == project_id,
            TimeTemplate.user_id == user_id,
            TimeTemplate.name == DEFAULT_TEMPLATES[0]["name"],
            TimeTemplate.is_default.is_(True),
        )
        .first()
    )
    if has_templates is None:
        for values in DEFAULT_TEMPLATES:
            db.add(
                TimeTemplate(
                    user_id=user_id,
                    project_id=project_id,
                    is_default=True,
                    **{**values, "tags": list(values["tags"])},
                )
            )
            templates_created += 1

    has_standup = (
        db.query(RecurringEntry.id)
        .filter(
            RecurringEntry.project_id == project_id,
            RecurringEntry.user_id == user_id,
            RecurringEntry.name == DAILY_STANDUP["name"],
        )
        .first()
    )
    if has_standup is None:
        db.add(
            RecurringEntry(
                user_id=user_id,
                project_id=project_id,
                start_date=today,
                active=True,
                **{
                    **DAILY_STANDUP,
                    "tags": list(DAILY_STANDUP["tags"]),
                    "days_of_week": list(DAILY_STANDUP["days_of_week"]),
                },
            )
        )
        recurring_created += 1

    return templates_created, recurring_created
