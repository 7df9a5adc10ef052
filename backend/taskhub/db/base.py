"""SQLAlchemy Base class and common model mixins."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    # Automatically generate __tablename__ from class name
    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Generate table name from class name (CamelCase to snake_case)."""
        name = cls.__name__
        return "".join(
            ["_" + c.lower() if c.isupper() else c for c in name]
        ).lstrip("_") + "s"

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    """Mixin for soft delete support.

    Rows with a non-null ``deleted_at`` are excluded from every default read;
    use :meth:`not_deleted` when building queries.
    """

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    @property
    def is_deleted(self) -> bool:
        """Check if the record is soft deleted."""
        return self.deleted_at is not None

    @classmethod
    def not_deleted(cls):
        """Filter clause selecting only live rows."""
        return cls.deleted_at.is_(None)


class IntegerIDMixin:
    """Mixin for an autoincrementing integer primary key."""

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )


class BaseModel(Base, IntegerIDMixin, TimestampMixin):
    """Base model with integer primary key and timestamps."""

    __abstract__ = True
