"""Report, CSV export and team endpoints."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from tally_api.auth.session_auth import SessionAuthContext, require_session
from tally_api.db.session import get_db
from tally_api.reports import summary, team
from tally_api.reports.team import MemberStats
from tally_api.schemas import (
    DailyTotalResponse,
    ProjectResponse,
    ProjectTotalResponse,
    ReportResponse,
    TeamDashboardResponse,
    TeamMemberResponse,
    TeamProjectResponse,
    TeamResponse,
    TeamSummaryResponse,
    TimeEntryResponse,
)
from tally_api.utils.timeutil import local_today

router = APIRouter(prefix="/v1", tags=["reports"])
logger = logging.getLogger(__name__)


@router.get("/reports", response_model=ReportResponse)
async def get_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    project_id: Optional[str] = Query(None),
    all_members: bool = Query(False),
    user_id: Optional[str] = Query(None),
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> ReportResponse:
    report = summary.build_report(
        db,
        auth.user_id,
        start_date=start_date,
        end_date=end_date,
        project_id=project_id,
        all_members=all_members,
        target_user_id=user_id,
    )
    return ReportResponse(
        projects=[
            ProjectTotalResponse(
                project_id=p.project_id,
                name=p.name,
                color=p.color,
                total_duration=p.total_duration,
                entry_count=p.entry_count,
            )
            for p in report.projects
        ],
        daily=[DailyTotalResponse(date=day, duration=seconds) for day, seconds in report.daily],
        total_duration=report.total_duration,
        total_entries=report.total_entries,
    )


@router.get("/reports/export")
async def export_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    project_id: Optional[str] = Query(None),
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> Response:
    """The caller's finished entries as a CSV download."""
    content = summary.export_csv(db, auth.user_id, start_date, end_date, project_id)
    filename = f"time-report-{local_today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _member_out(stats: MemberStats) -> TeamMemberResponse:
    return TeamMemberResponse(
        user_id=stats.user_id,
        name=stats.name,
        email=stats.email,
        project_ids=[p.id for p in stats.projects],
        total_seconds=stats.total_seconds,
        billable_seconds=stats.billable_seconds,
        entry_count=stats.entry_count,
        per_project=stats.per_project,
    )


@router.get("/team", response_model=TeamResponse, tags=["team"])
async def get_team(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TeamResponse:
    overview = team.team_overview(db, auth.user_id, start_date, end_date)
    return TeamResponse(
        projects=[
            TeamProjectResponse(id=p.id, name=p.name, color=p.color, member_count=count)
            for p, count in overview.projects
        ],
        members=[_member_out(m) for m in overview.members],
        recent_entries=[TimeEntryResponse.model_validate(e) for e in overview.recent_entries],
        summary=TeamSummaryResponse(
            total_hours=overview.total_hours,
            billable_hours=overview.billable_hours,
            total_value=overview.total_value,
        ),
    )


@router.get("/team/dashboard", response_model=TeamDashboardResponse, tags=["team"])
async def get_team_dashboard(
    project_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    auth: SessionAuthContext = Depends(require_session),
    db: Session = Depends(get_db),
) -> TeamDashboardResponse:
    dashboard = team.team_dashboard(db, auth.user_id, project_id, start_date, end_date)
    return TeamDashboardResponse(
        projects=[ProjectResponse.model_validate(p) for p in dashboard.projects],
        members=[_member_out(m) for m in dashboard.members],
        entries=[TimeEntryResponse.model_validate(e) for e in dashboard.entries],
        start_date=dashboard.start_date,
        end_date=dashboard.end_date,
    )
