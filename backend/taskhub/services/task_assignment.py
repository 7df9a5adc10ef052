"""Task assignment service for managing task assignees."""

from typing import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskhub.config import get_settings
from taskhub.exceptions import DataAccessError, InvalidInput
from taskhub.models.project import TaskAssignee
from taskhub.models.staff import Staff

logger = structlog.get_logger()


class TaskAssignmentService:
    """Service for managing task assignees (up to ``max_task_assignees``)."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.max_assignees = get_settings().max_task_assignees

    async def get_active_assignees(self, task_id: int) -> Sequence[TaskAssignee]:
        """Active assignee rows for a task, with staff loaded."""
        try:
            result = await self.db.execute(
                select(TaskAssignee)
                .options(selectinload(TaskAssignee.assigned_to))
                .where(
                    TaskAssignee.task_id == task_id,
                    TaskAssignee.is_active.is_(True),
                )
                .order_by(TaskAssignee.id)
            )
        except SQLAlchemyError as e:
            raise DataAccessError("fetch task assignees", e) from e
        return result.scalars().all()

    async def assign_staff(
        self,
        task_id: int,
        staff_ids: list[int],
        assigned_by_id: int | None = None,
    ) -> Sequence[TaskAssignee]:
        """Assign staff to a task.

        Already-active assignees are skipped and inactive mappings are
        reactivated. The resulting number of active assignees may not exceed
        the configured maximum.
        """
        requested = list(dict.fromkeys(staff_ids))
        if not requested:
            raise InvalidInput("At least one assignee is required")

        try:
            known = await self.db.execute(select(Staff.id).where(Staff.id.in_(requested)))
            existing = await self.db.execute(
                select(TaskAssignee).where(TaskAssignee.task_id == task_id)
            )
        except SQLAlchemyError as e:
            raise DataAccessError("fetch task assignees", e) from e

        unknown = set(requested) - set(known.scalars().all())
        if unknown:
            raise InvalidInput(
                "Unknown staff ids",
                data={"staff_ids": sorted(unknown)},
            )

        by_staff = {a.assigned_to_staff_id: a for a in existing.scalars().all()}
        active = {sid for sid, a in by_staff.items() if a.is_active}
        if len(active | set(requested)) > self.max_assignees:
            raise InvalidInput(f"Maximum {self.max_assignees} assignees allowed per task")

        added = 0
        for staff_id in requested:
            mapping = by_staff.get(staff_id)
            if mapping is None:
                self.db.add(
                    TaskAssignee(
                        task_id=task_id,
                        assigned_to_staff_id=staff_id,
                        assigned_by_staff_id=assigned_by_id,
                        is_active=True,
                    )
                )
                added += 1
            elif not mapping.is_active:
                mapping.is_active = True
                mapping.assigned_by_staff_id = assigned_by_id
                added += 1

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DataAccessError("assign staff to task", e) from e

        logger.info(
            "staff_assigned_to_task",
            task_id=task_id,
            staff_count=added,
            assigned_by=assigned_by_id,
        )

        return await self.get_active_assignees(task_id)
