"""Recurring entry definitions and the run-due trigger."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tally_api.access.recurring import run_due_recurring
from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.session import get_db
from tally_api.schemas import (
    MessageResponse,
    RecurringCreateRequest,
    RecurringResponse,
    RecurringRunResponse,
    RecurringUpdateRequest,
    TimeEntryResponse,
)
from tally_api.tracking import templates as service
from tally_api.utils.timeutil import local_today

router = APIRouter(prefix="/v1/recurring", tags=["recurring"])
logger = logging.getLogger(__name__)


def _values(payload: dict) -> dict:
    if payload.get("frequency") is not None:
        payload["frequency"] = payload["frequency"].value
    return payload


@router.get("", response_model=list[RecurringResponse])
async def list_recurring(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[RecurringResponse]:
    return [RecurringResponse.model_validate(r) for r in service.list_recurring(db, auth.user_id)]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=RecurringResponse)
async def create_recurring(
    request: RecurringCreateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> RecurringResponse:
    values = _values(request.model_dump(exclude={"project_id"}))
    recurring = service.create_recurring(db, auth.user_id, request.project_id, values)
    return RecurringResponse.model_validate(recurring)


@router.post("/run", response_model=RecurringRunResponse)
async def run_recurring(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> RecurringRunResponse:
    """Materialize today's due entries for the caller.

    Safe to call repeatedly: each definition fires at most once per day.
    """
    created = run_due_recurring(db, auth.user_id, local_today())
    return RecurringRunResponse(
        created=len(created),
        entries=[TimeEntryResponse.model_validate(e) for e in created],
    )


@router.put("/{recurring_id}", response_model=RecurringResponse)
async def update_recurring(
    recurring_id: str,
    request: RecurringUpdateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> RecurringResponse:
    changes = _values(request.model_dump(exclude_unset=True))
    recurring = service.update_recurring(db, auth.user_id, recurring_id, changes)
    return RecurringResponse.model_validate(recurring)


@router.delete("/{recurring_id}", response_model=MessageResponse)
async def delete_recurring(
    recurring_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    service.delete_recurring(db, auth.user_id, recurring_id)
    return MessageResponse(message="Recurring entry deleted")
