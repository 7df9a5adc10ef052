"""Recurring task service: task completion and next-occurrence creation."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Protocol

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskhub.exceptions import DataAccessError, InvalidInput, NotFound
from taskhub.models.project import Task, TaskAssignee
from taskhub.models.staff import Staff
from taskhub.services.access_control import ensure_can_complete_task

logger = structlog.get_logger()

# Calendar increments; relativedelta clamps month/year overflow to the last
# valid day of the target month (Jan 31 + 1 month -> Feb 28/29)
FREQUENCY_STEPS: dict[str, relativedelta] = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}


class RecurringFields(Protocol):
    start_date: Any
    due_date: Any
    repeat_frequency: str | None


@dataclass(frozen=True)
class NextOccurrence:
    start_date: date
    due_date: date


@dataclass
class CompletionResult:
    task: Task
    next_task: Task | None = None
    assignees_copied: int = 0
    assignee_copy_error: str | None = None


def _coerce_date(value: Any) -> date | None:
    """Accept date, datetime or ISO string; None when missing or unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def compute_next_occurrence(task: RecurringFields, today: date | None = None) -> NextOccurrence:
    """Compute the start and due dates of a recurring task's next occurrence.

    The next occurrence starts one frequency step after the current due date
    and keeps the current start-to-due duration. Missing or invalid dates fall
    back to starting today and being due tomorrow.
    """
    today = today or date.today()
    start = _coerce_date(task.start_date)
    due = _coerce_date(task.due_date)

    if start is None or due is None:
        logger.warning(
            "recurrence_dates_missing",
            start_date=str(task.start_date),
            due_date=str(task.due_date),
        )
        return NextOccurrence(start_date=today, due_date=today + timedelta(days=1))

    duration = due - start

    step = FREQUENCY_STEPS.get(task.repeat_frequency or "")
    if step is None:
        logger.warning("unknown_repeat_frequency", repeat_frequency=task.repeat_frequency)
        step = FREQUENCY_STEPS["daily"]

    next_start = due + step
    return NextOccurrence(start_date=next_start, due_date=next_start + duration)


class RecurringTaskService:
    """Service for completing tasks and growing recurrence chains."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_live_task(self, task_id: int) -> Task:
        try:
            result = await self.db.execute(
                select(Task)
                .options(selectinload(Task.assignees))
                .where(Task.id == task_id, Task.not_deleted())
            )
        except SQLAlchemyError as e:
            raise DataAccessError("fetch task", e) from e

        task = result.scalar_one_or_none()
        if task is None:
            raise NotFound("Task not found")
        return task

    async def complete_task(
        self,
        task_id: int,
        actor: Staff,
        now: datetime | None = None,
    ) -> CompletionResult:
        """Mark a task completed and, if it repeats, create its next occurrence.

        The assignee copy onto the next occurrence runs in a savepoint; if it
        fails the completion and the new task are still committed.
        """
        now = now or datetime.now(timezone.utc)
        task = await self.get_live_task(task_id)

        if task.status == "completed":
            raise InvalidInput("Task is already completed")
        ensure_can_complete_task(actor, task)

        task.status = "completed"
        task.completed_at = now
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DataAccessError("update task status", e) from e

        logger.info("task_completed", task_id=task.id, staff_id=actor.id)
        result = CompletionResult(task=task)

        if task.is_recurring:
            next_task = await self.create_next_occurrence(task, today=now.date())
            result.next_task = next_task
            try:
                async with self.db.begin_nested():
                    result.assignees_copied = await self._copy_active_assignees(task, next_task)
            except SQLAlchemyError as e:
                logger.error(
                    "recurring_assignee_copy_failed",
                    task_id=task.id,
                    next_task_id=next_task.id,
                    error=str(e),
                )
                result.assignee_copy_error = str(e)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DataAccessError("complete task", e) from e

        await self.db.refresh(task)
        if result.next_task is not None:
            await self.db.refresh(result.next_task)

        return result

    async def create_next_occurrence(self, task: Task, today: date | None = None) -> Task:
        """Insert the next task in the recurrence chain of a completed task."""
        occurrence = compute_next_occurrence(task, today=today)

        next_task = Task(
            title=task.title,
            notes=task.notes,
            priority=task.priority,
            repeat_frequency=task.repeat_frequency,
            project_id=task.project_id,
            creator_id=task.creator_id,
            parent_task_id=task.parent_task_id or task.id,
            status="not-started",
            completed_at=None,
            start_date=occurrence.start_date,
            due_date=occurrence.due_date,
        )
        self.db.add(next_task)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("recurring_task_creation_failed", task_id=task.id, error=str(e))
            raise DataAccessError("create next occurrence", e) from e

        logger.info(
            "recurring_task_created",
            task_id=next_task.id,
            previous_task_id=task.id,
            parent_task_id=next_task.parent_task_id,
            start_date=str(occurrence.start_date),
            due_date=str(occurrence.due_date),
        )
        return next_task

    async def _copy_active_assignees(self, source: Task, target: Task) -> int:
        result = await self.db.execute(
            select(TaskAssignee).where(
                TaskAssignee.task_id == source.id,
                TaskAssignee.is_active.is_(True),
            )
        )
        rows = [
            {
                "task_id": target.id,
                "assigned_to_staff_id": a.assigned_to_staff_id,
                "assigned_by_staff_id": a.assigned_by_staff_id,
                "is_active": True,
            }
            for a in result.scalars().all()
        ]
        if not rows:
            return 0

        await self._insert_assignee_copies(rows)
        logger.info("recurring_assignees_copied", task_id=target.id, count=len(rows))
        return len(rows)

    async def _insert_assignee_copies(self, rows: list[dict[str, Any]]) -> None:
        await self.db.execute(insert(TaskAssignee), rows)
