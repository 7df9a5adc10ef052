"""Admin staff management endpoints."""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.auth import AdminStaff
from taskhub.db.session import get_db_session
from taskhub.exceptions import DataAccessError, InvalidInput, NotFound
from taskhub.models.staff import Staff
from taskhub.services.access_control import ensure_not_self_role_change

router = APIRouter()
logger = structlog.get_logger()


class StaffResponse(BaseModel):
    """Staff record as seen by admins."""

    id: int
    fullname: str
    email: str | None
    contact_number: str | None
    designation: str | None
    department: str | None
    user_id: str | None
    is_manager: bool
    is_admin: bool
    role: str

    class Config:
        from_attributes = True


class StaffUpdate(BaseModel):
    """Staff update request; only the fields sent are changed."""

    fullname: str | None = Field(None, min_length=1, max_length=255)
    contact_number: str | None = Field(None, max_length=50)
    designation: str | None = Field(None, max_length=255)
    department: str | None = Field(None, max_length=255)
    is_manager: bool | None = None
    is_admin: bool | None = None


class StaffListResponse(BaseModel):
    success: bool = True
    data: list[StaffResponse]


class StaffUpdateResponse(BaseModel):
    success: bool = True
    data: StaffResponse
    message: str = "User updated successfully"


@router.get("/users", response_model=StaffListResponse)
async def list_staff(
    admin: AdminStaff,
    db: AsyncSession = Depends(get_db_session),
) -> StaffListResponse:
    """List all staff ordered by name."""
    try:
        result = await db.execute(select(Staff).order_by(Staff.fullname, Staff.id))
    except SQLAlchemyError as e:
        raise DataAccessError("fetch users", e) from e

    return StaffListResponse(
        data=[StaffResponse.model_validate(s) for s in result.scalars().all()]
    )


@router.put("/users/{staff_id}", response_model=StaffUpdateResponse)
async def update_staff(
    staff_id: int,
    body: StaffUpdate,
    admin: AdminStaff,
    db: AsyncSession = Depends(get_db_session),
) -> StaffUpdateResponse:
    """Update a staff record's profile fields or role flags.

    Admins cannot change their own role flags.
    """
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise InvalidInput("No valid fields to update")

    ensure_not_self_role_change(admin, staff_id, changes)

    try:
        result = await db.execute(select(Staff).where(Staff.id == staff_id))
    except SQLAlchemyError as e:
        raise DataAccessError("fetch user", e) from e

    staff = result.scalar_one_or_none()
    if staff is None:
        raise NotFound("User not found")

    for field, value in changes.items():
        setattr(staff, field, value)

    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise DataAccessError("update user", e) from e
    await db.refresh(staff)

    logger.info(
        "staff_updated",
        staff_id=staff.id,
        updated_by=admin.id,
        fields=sorted(changes),
    )
    return StaffUpdateResponse(data=StaffResponse.model_validate(staff))
