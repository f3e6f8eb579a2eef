"""Time template endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.session import get_db
from tally_api.schemas import (
    DefaultsCreatedResponse,
    MessageResponse,
    TemplateCreateRequest,
    TemplateResponse,
    TemplateUseRequest,
    TimeEntryResponse,
)
from tally_api.tracking import templates as service

router = APIRouter(prefix="/v1/templates", tags=["templates"])


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[TemplateResponse]:
    return [TemplateResponse.model_validate(t) for t in service.list_templates(db, auth.user_id)]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=TemplateResponse)
async def create_template(
    request: TemplateCreateRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TemplateResponse:
    template = service.create_template(
        db, auth.user_id, request.project_id, request.model_dump(exclude={"project_id"})
    )
    return TemplateResponse.model_validate(template)


@router.post("/defaults", response_model=DefaultsCreatedResponse)
async def create_default_templates(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> DefaultsCreatedResponse:
    """Seed the default templates and stand-up into owned projects missing them."""
    templates_created, recurring_created = service.create_default_templates(db, auth.user_id)
    return DefaultsCreatedResponse(templates_created=templates_created, recurring_created=recurring_created)


@router.delete("/{template_id}", response_model=MessageResponse)
async def delete_template(
    template_id: str,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    service.delete_template(db, auth.user_id, template_id)
    return MessageResponse(message="Template deleted")


@router.post("/{template_id}/use", status_code=status.HTTP_201_CREATED, response_model=TimeEntryResponse)
async def use_template(
    template_id: str,
    request: Optional[TemplateUseRequest] = None,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = service.use_template(db, auth.user_id, template_id, request.date if request else None)
    return TimeEntryResponse.model_validate(entry)
