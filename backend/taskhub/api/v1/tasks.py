"""Task completion and assignee endpoints."""

from datetime import date, datetime

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import CurrentStaff
from taskhub.db.session import get_db_session
from taskhub.services.recurring_task import RecurringTaskService
from taskhub.services.task_assignment import TaskAssignmentService

router = APIRouter()
logger = structlog.get_logger()


# Request/Response Models
class TaskResponse(BaseModel):
    """Task response."""

    id: int
    title: str
    notes: str | None
    status: str
    priority: str | None
    start_date: date | None
    due_date: date | None
    completed_at: datetime | None
    project_id: int | None
    creator_id: int
    parent_task_id: int | None
    repeat_frequency: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CompletionData(BaseModel):
    task: TaskResponse
    nextTask: TaskResponse | None = None
    assigneesCopied: int = 0
    assigneeCopyError: str | None = None


class CompletionResponse(BaseModel):
    success: bool = True
    data: CompletionData
    message: str


class AssigneeCreate(BaseModel):
    """Assign staff to a task."""

    staff_ids: list[int] = Field(..., min_length=1)


class AssigneeResponse(BaseModel):
    """Active assignee of a task."""

    id: int
    task_id: int
    assigned_to_staff_id: int
    assigned_by_staff_id: int | None
    is_active: bool
    fullname: str | None = None
    department: str | None = None


class AssigneeListResponse(BaseModel):
    success: bool = True
    data: list[AssigneeResponse]


def _assignee_response(assignee) -> AssigneeResponse:
    staff = assignee.assigned_to
    return AssigneeResponse(
        id=assignee.id,
        task_id=assignee.task_id,
        assigned_to_staff_id=assignee.assigned_to_staff_id,
        assigned_by_staff_id=assignee.assigned_by_staff_id,
        is_active=assignee.is_active,
        fullname=staff.fullname if staff else None,
        department=staff.department if staff else None,
    )


@router.post("/{task_id}/complete", response_model=CompletionResponse)
async def complete_task(
    task_id: int,
    current_staff: CurrentStaff,
    db: AsyncSession = Depends(get_db_session),
) -> CompletionResponse:
    """Mark a task completed.

    Recurring tasks get their next occurrence created, with the active
    assignees carried over.
    """
    result = await RecurringTaskService(db).complete_task(task_id, current_staff)

    if result.next_task is not None:
        message = "Task completed and next occurrence created"
    else:
        message = "Task completed"

    return CompletionResponse(
        data=CompletionData(
            task=TaskResponse.model_validate(result.task),
            nextTask=(
                TaskResponse.model_validate(result.next_task)
                if result.next_task is not None
                else None
            ),
            assigneesCopied=result.assignees_copied,
            assigneeCopyError=result.assignee_copy_error,
        ),
        message=message,
    )


@router.get("/{task_id}/assignees", response_model=AssigneeListResponse)
async def list_task_assignees(
    task_id: int,
    current_staff: CurrentStaff,
    db: AsyncSession = Depends(get_db_session),
) -> AssigneeListResponse:
    """List the active assignees of a task."""
    await RecurringTaskService(db).get_live_task(task_id)
    assignees = await TaskAssignmentService(db).get_active_assignees(task_id)
    return AssigneeListResponse(data=[_assignee_response(a) for a in assignees])


@router.post("/{task_id}/assignees", response_model=AssigneeListResponse)
async def assign_task(
    task_id: int,
    body: AssigneeCreate,
    current_staff: CurrentStaff,
    db: AsyncSession = Depends(get_db_session),
) -> AssigneeListResponse:
    """Assign staff to a task; returns the resulting active assignees."""
    await RecurringTaskService(db).get_live_task(task_id)
    assignees = await TaskAssignmentService(db).assign_staff(
        task_id, body.staff_ids, assigned_by_id=current_staff.id
    )
    return AssigneeListResponse(data=[_assignee_response(a) for a in assignees])
