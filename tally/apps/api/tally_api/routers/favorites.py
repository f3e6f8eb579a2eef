"""Favorite project bookmarks and the tag vocabulary."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tally_api.access.tags import TAG_VOCABULARY
from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.session import get_db
from tally_api.reports.summary import tag_usage
from tally_api.schemas import (
    FavoriteToggleRequest,
    FavoriteToggleResponse,
    ProjectResponse,
    TagsResponse,
    TagUsage,
)
from tally_api.tracking import projects as service

router = APIRouter(prefix="/v1", tags=["favorites"])


@router.get("/favorites", response_model=list[ProjectResponse])
async def list_favorites(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> list[ProjectResponse]:
    return [ProjectResponse.model_validate(p) for p in service.list_favorite_projects(db, auth.user_id)]


@router.post("/favorites", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    request: FavoriteToggleRequest,
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> FavoriteToggleResponse:
    favorited = service.toggle_favorite(db, auth.user_id, request.project_id)
    return FavoriteToggleResponse(project_id=request.project_id, favorited=favorited)


@router.get("/tags", response_model=TagsResponse, tags=["tags"])
async def list_tags(
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TagsResponse:
    return TagsResponse(
        vocabulary=sorted(TAG_VOCABULARY),
        used=[TagUsage(name=name, count=count) for name, count in tag_usage(db, auth.user_id)],
    )
