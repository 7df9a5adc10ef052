"""Caller authentication.

Tokens are issued by the external auth provider; this module only verifies
them and maps the subject onto a staff record.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config import get_settings
from taskhub.db.session import get_db_session
from taskhub.exceptions import Unauthenticated
from taskhub.models.staff import ROLE_ADMIN, ROLE_MANAGER, Staff
from taskhub.services.access_control import require_role, resolve_staff

logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


def create_access_token(auth_user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token for an external auth identity."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )

    to_encode = {
        "sub": str(auth_user_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_identity(credentials: HTTPAuthorizationCredentials | None) -> str:
    """Return the auth identity in a bearer token or raise Unauthenticated."""
    if not credentials:
        raise Unauthenticated()

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise Unauthenticated("Invalid token")

    auth_user_id = payload.get("sub")
    if auth_user_id is None or payload.get("type") != "access":
        raise Unauthenticated("Invalid token")
    return auth_user_id


async def get_current_staff(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> Staff:
    """Get the staff record of the authenticated caller."""
    auth_user_id = decode_identity(credentials)
    staff = await resolve_staff(db, auth_user_id)
    structlog.contextvars.bind_contextvars(staff_id=staff.id)
    return staff


async def get_report_viewer(
    staff: Annotated[Staff, Depends(get_current_staff)],
) -> Staff:
    """Managers and admins only."""
    return require_role(
        staff,
        ROLE_MANAGER,
        "Access denied - Only managers and admins can generate reports",
    )


async def get_admin(
    staff: Annotated[Staff, Depends(get_current_staff)],
) -> Staff:
    """Admins only."""
    return require_role(staff, ROLE_ADMIN, "Access denied. Admin privileges required.")


# Type aliases for dependency injection
CurrentStaff = Annotated[Staff, Depends(get_current_staff)]
ReportViewer = Annotated[Staff, Depends(get_report_viewer)]
AdminStaff = Annotated[Staff, Depends(get_admin)]
