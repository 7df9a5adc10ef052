"""Manager and admin report endpoints."""

from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import ReportViewer
from taskhub.db.session import get_db_session
from taskhub.services.reporting import (
    DateRange,
    LoggedTimeFilters,
    ReportService,
    TaskCompletionFilters,
    TeamSummaryFilters,
)

router = APIRouter()


# --- Report Schemas ---

class StaffRef(BaseModel):
    id: int
    fullname: str


class ProjectRef(BaseModel):
    id: int
    name: str


class CompletionMetrics(BaseModel):
    """Status counts; percentages are two-decimal strings."""
    totalTasks: int
    completedTasks: int
    completedPercentage: str
    inProgressTasks: int
    inProgressPercentage: str
    notStartedTasks: int
    notStartedPercentage: str
    blockedTasks: int
    blockedPercentage: str
    projectedTasks: int


class CompletionTask(BaseModel):
    id: int
    title: str
    status: str
    start_date: date | None
    due_date: date | None
    completed_at: datetime | None
    created_at: datetime
    project_id: int | None
    creator_id: int
    assignees: list[StaffRef]
    project: ProjectRef | None


class TaskCompletionData(BaseModel):
    metrics: CompletionMetrics
    tasks: list[CompletionTask]
    filters: dict[str, Any]
    generatedAt: str


class TaskCompletionResponse(BaseModel):
    success: bool = True
    data: TaskCompletionData


class LoggedTimeTask(BaseModel):
    id: int
    title: str
    status: str
    created_at: datetime
    completed_at: datetime | None
    project_id: int | None
    project_name: str | None
    department: str | None
    logged_hours: float
    is_in_progress: bool


class LoggedTimeGroup(BaseModel):
    name: str
    total_hours: float
    completed_tasks: int
    in_progress_tasks: int
    avg_hours_per_task: float
    tasks: list[LoggedTimeTask]


class LoggedTimeMetrics(BaseModel):
    totalHours: float
    totalTasks: int
    completedTasks: int
    inProgressTasks: int
    avgHoursPerTask: float
    groupCount: int


class LoggedTimeData(BaseModel):
    metrics: LoggedTimeMetrics
    groupedData: list[LoggedTimeGroup]
    filters: dict[str, Any]
    generatedAt: str


class LoggedTimeResponse(BaseModel):
    success: bool = True
    data: LoggedTimeData


class TeamSummaryResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]


# --- Report Endpoints ---

@router.get("/task-completion", response_model=TaskCompletionResponse)
async def get_task_completion_report(
    viewer: ReportViewer,
    user_id: int | None = Query(None),
    project_id: int | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Task status breakdown for tasks created in a date range."""
    filters = TaskCompletionFilters(
        user_id=user_id,
        project_id=project_id,
        date_range=DateRange.parse(start_date, end_date),
    )
    data = await ReportService(db).task_completion_report(filters)
    return {"success": True, "data": data}


@router.get("/logged-time", response_model=LoggedTimeResponse)
async def get_logged_time_report(
    viewer: ReportViewer,
    grouping: str = Query("project"),
    project_id: int | None = Query(None),
    department: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Hours logged per task, grouped by project or department."""
    filters = LoggedTimeFilters(
        grouping=grouping,
        project_id=project_id,
        department=department or None,
        date_range=DateRange.parse(start_date, end_date),
    )
    data = await ReportService(db).logged_time_report(filters)
    return {"success": True, "data": data}


@router.get("/team-summary", response_model=TeamSummaryResponse)
async def get_team_summary_report(
    viewer: ReportViewer,
    project_id: int | None = Query(None),
    period: str = Query("weekly"),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Team performance for one project, limited to departments the viewer can see."""
    filters = TeamSummaryFilters(
        project_id=project_id,
        period=period,
        date_range=DateRange.parse(start_date, end_date),
    )
    data = await ReportService(db).team_summary_report(filters, viewer)
    return {"success": True, "data": data}
