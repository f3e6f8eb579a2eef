"""Time entry endpoints.

Listing honors the visibility options:
- all_members=true: every member of the caller's organization
- user_id=<id>: one same-org member (or, without an organization, a member
  of a project the caller owns); anything else -> 403
Edits and deletes: own entries, or any entry in a project the caller owns.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.session import get_db
from tally_api.schemas import (
    BulkEntryRequest,
    CommentCreateRequest,
    CommentResponse,
    DuplicateEntryRequest,
    EntryFieldsRequest,
    ManualEntryRequest,
    MessageResponse,
    StartTimerRequest,
    TimeEntryResponse,
    TimeEntryUpdateRequest,
)
from tally_api.tracking import entries as service
from tally_api.tracking.entries import BulkItem, EntryFields

router = APIRouter(prefix="/v1/time-entries", tags=["time-entries"])
logger = logging.getLogger(__name__)


def _fields(request: EntryFieldsRequest) -> EntryFields:
    return EntryFields(
        task_id=request.task_id,
        description=request.description,
        activity=request.activity,
        subtask=request.subtask,
        notes=request.notes,
        billable=request.billable,
        tags=list(request.tags),
    )


def _out(entries) -> list[TimeEntryResponse]:
    return [TimeEntryResponse.model_validate(e) for e in entries]


@router.get("", response_model=list[TimeEntryResponse])
async def list_entries(
    all_members: bool = Query(False),
    user_id: Optional[str] = Query(None, description="Target user (same organization)"),
    project_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[TimeEntryResponse]:
    return _out(
        service.list_entries(
            db,
            auth.user_id,
            all_members=all_members,
            target_user_id=user_id,
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
        )
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=TimeEntryResponse)
async def start_timer(
    request: StartTimerRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    """Start a timer. 409 when one is already running."""
    entry = service.start_timer(db, auth.user_id, request.project_id, _fields(request))
    return TimeEntryResponse.model_validate(entry)


@router.get("/active", response_model=Optional[TimeEntryResponse])
async def get_active_entry(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> Optional[TimeEntryResponse]:
    entry = service.get_active_entry(db, auth.user_id)
    return TimeEntryResponse.model_validate(entry) if entry else None


@router.post("/stop", response_model=TimeEntryResponse)
async def stop_timer(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return TimeEntryResponse.model_validate(service.stop_timer(db, auth.user_id))


@router.post("/manual", status_code=status.HTTP_201_CREATED, response_model=TimeEntryResponse)
async def create_manual_entry(
    request: ManualEntryRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = service.create_manual_entry(
        db,
        auth.user_id,
        request.project_id,
        _fields(request),
        start_time=request.start_time,
        end_time=request.end_time,
        duration=request.duration,
        day=request.date,
    )
    return TimeEntryResponse.model_validate(entry)


@router.post("/bulk", status_code=status.HTTP_201_CREATED, response_model=list[TimeEntryResponse])
async def create_bulk_entries(
    request: BulkEntryRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[TimeEntryResponse]:
    items = [
        BulkItem(project_id=item.project_id, duration=item.duration, day=item.date, fields=_fields(item))
        for item in request.entries
    ]
    return _out(service.create_bulk_entries(db, auth.user_id, items))


@router.get("/search", response_model=list[TimeEntryResponse])
async def search_entries(
    q: str = Query(""),
    project_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    tags: Optional[str] = Query(None, description="Comma-separated"),
    limit: int = Query(service.DEFAULT_SEARCH_LIMIT, ge=1),
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[TimeEntryResponse]:
    tag_list = [t for t in (tags or "").split(",") if t]
    return _out(
        service.search_entries(
            db,
            auth.user_id,
            text=q,
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
            tags=tag_list,
            limit=limit,
        )
    )


@router.get("/{entry_id}", response_model=TimeEntryResponse)
async def get_entry(
    entry_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return TimeEntryResponse.model_validate(service.get_entry(db, auth.user_id, entry_id))


@router.put("/{entry_id}", response_model=TimeEntryResponse)
async def update_entry(
    entry_id: str,
    request: TimeEntryUpdateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = service.update_entry(db, auth.user_id, entry_id, request.model_dump(exclude_unset=True))
    return TimeEntryResponse.model_validate(entry)


@router.delete("/{entry_id}", response_model=MessageResponse)
async def delete_entry(
    entry_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    service.delete_entry(db, auth.user_id, entry_id)
    return MessageResponse(message="Entry deleted")


@router.post("/{entry_id}/duplicate", status_code=status.HTTP_201_CREATED, response_model=TimeEntryResponse)
async def duplicate_entry(
    entry_id: str,
    request: Optional[DuplicateEntryRequest] = None,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    day = request.date if request else None
    return TimeEntryResponse.model_validate(service.duplicate_entry(db, auth.user_id, entry_id, day))


@router.get("/{entry_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    entry_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[CommentResponse]:
    return [CommentResponse.model_validate(c) for c in service.list_comments(db, auth.user_id, entry_id)]


@router.post("/{entry_id}/comments", status_code=status.HTTP_201_CREATED, response_model=CommentResponse)
async def add_comment(
    entry_id: str,
    request: CommentCreateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> CommentResponse:
    comment = service.add_comment(db, auth.user_id, entry_id, request.content)
    return CommentResponse.model_validate(comment)
