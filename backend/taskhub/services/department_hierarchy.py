"""Department hierarchy and report visibility.

Each department may view itself and the departments below it. Departments
missing from the mapping can only view themselves.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.exceptions import DataAccessError
from taskhub.models.staff import Staff

logger = structlog.get_logger()

_SALES = ["Sales Director", "Sales Manager", "Account Managers"]
_CONSULTANCY = ["Consultancy Division Director", "Consultant"]
_SYSTEM_SOLUTIONING = ["System Solutioning Division Director", "Developers", "Support Team"]
_ENGINEERING_OPERATIONS = [
    "Engineering Operation Division Director",
    "Senior Engineers",
    "Junior Engineers",
    "Call Centre",
    "Operations Planning Team",
]
_HR_AND_ADMIN = ["HR and Admin Director", "HR Team", "L&D Team", "Admin Team"]
_FINANCE = ["Finance Director", "Finance Managers", "Finance Executive"]
_IT = ["IT Director", "IT Team"]

DEPARTMENT_HIERARCHY: dict[str, list[str]] = {
    "Managing Director": [
        "Managing Director",
        *_SALES,
        *_CONSULTANCY,
        *_SYSTEM_SOLUTIONING,
        *_ENGINEERING_OPERATIONS,
        *_HR_AND_ADMIN,
        *_FINANCE,
        *_IT,
    ],
    "Sales Director": _SALES,
    "Sales Manager": ["Sales Manager", "Account Managers"],
    "Account Managers": ["Account Managers"],
    "Consultancy Division Director": _CONSULTANCY,
    "Consultant": ["Consultant"],
    "System Solutioning Division Director": _SYSTEM_SOLUTIONING,
    "Developers": ["Developers"],
    "Support Team": ["Support Team"],
    "Engineering Operation Division Director": _ENGINEERING_OPERATIONS,
    "Senior Engineers": ["Senior Engineers"],
    "Junior Engineers": ["Junior Engineers"],
    "Call Centre": ["Call Centre"],
    "Operations Planning Team": ["Operations Planning Team"],
    "HR and Admin Director": _HR_AND_ADMIN,
    "HR Team": ["HR Team"],
    "L&D Team": ["L&D Team"],
    "Admin Team": ["Admin Team"],
    "Finance Director": _FINANCE,
    "Finance Managers": ["Finance Managers", "Finance Executive"],
    "Finance Executive": ["Finance Executive"],
    "IT Director": _IT,
    "IT Team": ["IT Team"],
}


def get_visible_departments(department: str | None) -> list[str]:
    """Departments a member of ``department`` may view (including their own)."""
    if not department:
        return []
    return list(DEPARTMENT_HIERARCHY.get(department, [department]))


def can_view_department(viewer_department: str | None, target_department: str | None) -> bool:
    """Check whether ``viewer_department`` can see ``target_department``."""
    if not viewer_department or not target_department:
        return False
    return target_department in get_visible_departments(viewer_department)


async def get_visible_staff_ids(db: AsyncSession, department: str | None) -> list[int]:
    """Ids of staff whose department is visible from ``department``."""
    visible = get_visible_departments(department)
    if not visible:
        return []

    try:
        result = await db.execute(select(Staff.id).where(Staff.department.in_(visible)))
    except SQLAlchemyError as e:
        logger.error("visible_staff_fetch_failed", department=department, error=str(e))
        raise DataAccessError("fetch department staff", e) from e

    return list(result.scalars().all())
