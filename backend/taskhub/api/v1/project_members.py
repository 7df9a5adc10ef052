"""Project membership endpoints."""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import CurrentStaff
from taskhub.db.session import get_db_session
from taskhub.exceptions import DataAccessError, InvalidInput, NotFound
from taskhub.models.project import ProjectMember
from taskhub.services.access_control import check_member_removal

router = APIRouter()
logger = structlog.get_logger()


class MemberRemoval(BaseModel):
    project_id: int | None = None
    staff_id: int | None = None


class MemberRemovalResponse(BaseModel):
    success: bool = True
    message: str = "Member removed from project"


@router.delete("", response_model=MemberRemovalResponse)
async def remove_project_member(
    body: MemberRemoval,
    current_staff: CurrentStaff,
    db: AsyncSession = Depends(get_db_session),
) -> MemberRemovalResponse:
    """Remove a staff member from a project.

    Only the project owner or a project manager may do this, and the owner
    can never be removed.
    """
    if body.project_id is None or body.staff_id is None:
        raise InvalidInput("project_id and staff_id are required")

    await check_member_removal(db, body.project_id, current_staff, body.staff_id)

    try:
        result = await db.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == body.project_id,
                ProjectMember.staff_id == body.staff_id,
            )
        )
    except SQLAlchemyError as e:
        raise DataAccessError("fetch project member", e) from e

    member = result.scalar_one_or_none()
    if member is None:
        raise NotFound("Staff member is not part of this project")

    await db.delete(member)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise DataAccessError("remove project member", e) from e

    logger.info(
        "project_member_removed",
        project_id=body.project_id,
        staff_id=body.staff_id,
        removed_by=current_staff.id,
    )
    return MemberRemovalResponse()
