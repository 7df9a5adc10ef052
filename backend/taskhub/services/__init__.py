"""Services package."""

from taskhub.services.recurring_task import RecurringTaskService, compute_next_occurrence
from taskhub.services.reporting import ReportService
from taskhub.services.task_assignment import TaskAssignmentService

__all__ = [
    "RecurringTaskService",
    "ReportService",
    "TaskAssignmentService",
    "compute_next_occurrence",
]
