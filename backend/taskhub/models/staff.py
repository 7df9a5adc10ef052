"""Staff model."""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.db.base import BaseModel

if TYPE_CHECKING:
    from taskhub.models.project import ProjectMember

# Role names, lowest to highest privilege
ROLE_STAFF = "staff"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"


class Staff(BaseModel):
    """Internal staff record linked to an external auth identity."""

    __tablename__ = "staff"

    # Basic info
    fullname: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    designation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # External auth identity (JWT subject)
    user_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )

    # Role flags
    is_manager: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    project_memberships: Mapped[list["ProjectMember"]] = relationship(
        "ProjectMember", back_populates="staff", lazy="selectin"
    )

    @property
    def role(self) -> str:
        """Effective role derived from the role flags."""
        if self.is_admin:
            return ROLE_ADMIN
        if self.is_manager:
            return ROLE_MANAGER
        return ROLE_STAFF

    def __repr__(self) -> str:
        try:
            return f"<Staff {self.fullname}>"
        except Exception:
            return f"<Staff id={self.id}>"
