"""Project, Task and assignment models."""

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.db.base import BaseModel, SoftDeleteMixin

if TYPE_CHECKING:
    from taskhub.models.staff import Staff

TASK_STATUSES = ("not-started", "in-progress", "completed", "blocked")
REPEAT_FREQUENCIES = ("never", "daily", "weekly", "monthly", "yearly")


class Project(BaseModel, SoftDeleteMixin):
    """Project owned by a staff member."""

    __tablename__ = "projects"
    __table_args__ = (
        UniqueConstraint("name", "owner_id", name="uq_project_name_owner"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="active"
    )  # active, on-hold, completed, archived
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # low, medium, high

    owner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Relationships
    owner: Mapped["Staff"] = relationship("Staff", foreign_keys=[owner_id])
    members: Mapped[list["ProjectMember"]] = relationship(
        "ProjectMember", back_populates="project", lazy="selectin",
        cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        try:
            return f"<Project {self.name}>"
        except Exception:
            return f"<Project id={self.id}>"


class ProjectMember(BaseModel):
    """Collaborator on a project."""

    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "staff_id", name="uq_project_member"),
    )

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    staff_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default="member"
    )  # manager, member

    project: Mapped["Project"] = relationship("Project", back_populates="members")
    staff: Mapped["Staff"] = relationship("Staff", back_populates="project_memberships")

    def __repr__(self) -> str:
        return f"<ProjectMember project={self.project_id} staff={self.staff_id}>"


class Task(BaseModel, SoftDeleteMixin):
    """Task, optionally inside a project and optionally recurring."""

    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="not-started"
    )  # not-started, in-progress, completed, blocked
    priority: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Timeline
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Ownership
    project_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    creator_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Root of a recurrence chain
    parent_task_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    repeat_frequency: Mapped[str | None] = mapped_column(
        String(20), nullable=True, default="never"
    )  # never, daily, weekly, monthly, yearly

    # Relationships
    project: Mapped["Project | None"] = relationship("Project", foreign_keys=[project_id])
    creator: Mapped["Staff"] = relationship("Staff", foreign_keys=[creator_id])
    assignees: Mapped[list["TaskAssignee"]] = relationship(
        "TaskAssignee", back_populates="task", lazy="selectin",
        cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_recurring(self) -> bool:
        return bool(self.repeat_frequency) and self.repeat_frequency != "never"

    def __repr__(self) -> str:
        try:
            return f"<Task {self.title[:30]}>"
        except Exception:
            try:
                return f"<Task id={self.id}>"
            except Exception:
                return "<Task detached>"


class TaskAssignee(BaseModel):
    """Assignment of a staff member to a task."""

    __tablename__ = "task_assignees"
    __table_args__ = (
        UniqueConstraint("task_id", "assigned_to_staff_id", name="uq_task_assignee"),
    )

    task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_to_staff_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Who assigned this staff member
    assigned_by_staff_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("staff.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    task: Mapped["Task"] = relationship("Task", back_populates="assignees")
    assigned_to: Mapped["Staff"] = relationship("Staff", foreign_keys=[assigned_to_staff_id])
    assigned_by: Mapped["Staff | None"] = relationship(
        "Staff", foreign_keys=[assigned_by_staff_id]
    )

    def __repr__(self) -> str:
        return f"<TaskAssignee task={self.task_id} staff={self.assigned_to_staff_id}>"
