"""SQLAlchemy models package."""

from taskhub.models.staff import Staff
from taskhub.models.project import (
    Project,
    ProjectMember,
    Task,
    TaskAssignee,
)

__all__ = [
    "Project",
    "ProjectMember",
    "Staff",
    "Task",
    "TaskAssignee",
]
