"""Caller authorization.

Resolves an external auth identity to a staff record and enforces the
role rules for reports, admin endpoints, task completion and project
membership changes.
"""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.exceptions import (
    DataAccessError,
    Forbidden,
    InvalidInput,
    NoStaffRecord,
    NotFound,
)
from taskhub.models.project import Project, ProjectMember, Task
from taskhub.models.staff import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF, Staff

logger = structlog.get_logger()


# Role hierarchy for permission checking (higher = more permissions)
ROLE_HIERARCHY = {ROLE_ADMIN: 3, ROLE_MANAGER: 2, ROLE_STAFF: 1}

ROLE_FIELDS = ("is_admin", "is_manager")


def has_sufficient_role(role: str, required_role: str) -> bool:
    """Check if role meets or exceeds required_role."""
    return ROLE_HIERARCHY.get(role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


async def resolve_staff(db: AsyncSession, auth_user_id: str) -> Staff:
    """Load the staff record linked to an external auth identity.

    Raises:
        NoStaffRecord if the identity has no staff row
        DataAccessError if the lookup fails
    """
    try:
        result = await db.execute(select(Staff).where(Staff.user_id == auth_user_id))
    except SQLAlchemyError as e:
        raise DataAccessError("fetch staff data", e) from e

    staff = result.scalar_one_or_none()
    if staff is None:
        logger.warning("staff_record_missing", auth_user_id=auth_user_id)
        raise NoStaffRecord()
    return staff


def require_role(staff: Staff, required_role: str, message: str | None = None) -> Staff:
    """Raise Forbidden unless the staff member holds at least required_role."""
    if not has_sufficient_role(staff.role, required_role):
        logger.info(
            "access_denied",
            staff_id=staff.id,
            role=staff.role,
            required_role=required_role,
        )
        raise Forbidden(message)
    return staff


def ensure_not_self_role_change(actor: Staff, target_staff_id: int, changes: dict[str, Any]) -> None:
    """Block an admin from changing their own role flags."""
    if actor.id == target_staff_id and any(field in changes for field in ROLE_FIELDS):
        raise Forbidden("Cannot modify your own admin status")


def ensure_can_complete_task(actor: Staff, task: Task) -> None:
    """Creator, active assignees, managers and admins may complete a task."""
    if task.creator_id == actor.id or has_sufficient_role(actor.role, ROLE_MANAGER):
        return
    if any(a.is_active and a.assigned_to_staff_id == actor.id for a in task.assignees):
        return
    raise Forbidden("Only the task creator, its assignees, managers and admins can complete this task")


async def check_member_removal(
    db: AsyncSession,
    project_id: int,
    actor: Staff,
    staff_id_to_remove: int,
) -> Project:
    """Verify that actor may remove staff_id_to_remove from the project.

    Returns:
        The project if removal is allowed

    Raises:
        NotFound if the project is missing or soft-deleted
        InvalidInput if the member to remove is the project owner
        Forbidden if actor is neither the owner nor a project manager
    """
    try:
        result = await db.execute(
            select(Project, ProjectMember.role.label("actor_role"))
            .outerjoin(
                ProjectMember,
                (ProjectMember.project_id == Project.id)
                & (ProjectMember.staff_id == actor.id),
            )
            .where(Project.id == project_id, Project.not_deleted())
        )
    except SQLAlchemyError as e:
        raise DataAccessError("fetch project", e) from e

    row = result.first()
    if row is None:
        raise NotFound("Project not found")

    project, actor_role = row
    if project.owner_id == staff_id_to_remove:
        raise InvalidInput("Cannot remove the project owner from the project")

    is_owner = project.owner_id == actor.id
    is_project_manager = actor_role == "manager"
    if not is_owner and not is_project_manager:
        raise Forbidden("Only project owners and managers can remove members")

    return project
