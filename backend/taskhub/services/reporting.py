"""Reporting service for manager and admin dashboards.

Three reports are built here:

- task completion: status counts and percentages for tasks created in a
  date range, optionally narrowed to one project or one staff member
- logged time: derived hours per task, grouped by project or department
- team summary: per-assignee performance for a single project

Every report reads a bounded set of task rows and enriches them with batched
lookups (one query per related table, never one per task). Any failed fetch
aborts the whole report with ``DataAccessError``.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Literal, Sequence

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import raiseload
from sqlalchemy.sql import Select

from taskhub.config import get_settings
from taskhub.exceptions import DataAccessError, InvalidInput, NotFound
from taskhub.models.project import Project, Task, TaskAssignee
from taskhub.models.staff import Staff
from taskhub.services.department_hierarchy import get_visible_staff_ids

logger = structlog.get_logger()

Grouping = Literal["project", "department"]
Period = Literal["weekly", "monthly"]

GROUPINGS: tuple[str, ...] = ("project", "department")
PERIODS: tuple[str, ...] = ("weekly", "monthly")

NO_PROJECT_GROUP = "Personal Tasks"
NO_DEPARTMENT_GROUP = "No Department"

SECONDS_PER_HOUR = 3600


# =========================================================================
# Filters
# =========================================================================


def parse_report_date(value: str | None, field: str) -> date | None:
    """Parse an ISO date (or datetime) query parameter."""
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidInput(f"Invalid {field}: expected an ISO date (YYYY-MM-DD)")


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of creation dates."""

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise InvalidInput("start_date must not be after end_date")

    @classmethod
    def parse(cls, start_date: str | None, end_date: str | None) -> "DateRange":
        return cls(
            start=parse_report_date(start_date, "start_date"),
            end=parse_report_date(end_date, "end_date"),
        )

    def lower_bound(self) -> datetime | None:
        if self.start is None:
            return None
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    def upper_bound(self) -> datetime | None:
        """Exclusive upper bound: midnight after the end date."""
        if self.end is None:
            return None
        return datetime.combine(self.end + timedelta(days=1), time.min, tzinfo=timezone.utc)

    def apply(self, query: Select) -> Select:
        lower = self.lower_bound()
        if lower is not None:
            query = query.where(Task.created_at >= lower)
        upper = self.upper_bound()
        if upper is not None:
            query = query.where(Task.created_at < upper)
        return query

    def as_filters(self) -> dict[str, str | None]:
        return {
            "start_date": self.start.isoformat() if self.start else None,
            "end_date": self.end.isoformat() if self.end else None,
        }


@dataclass(frozen=True)
class TaskCompletionFilters:
    user_id: int | None = None
    project_id: int | None = None
    date_range: DateRange = DateRange()


@dataclass(frozen=True)
class LoggedTimeFilters:
    grouping: Grouping = "project"
    project_id: int | None = None
    department: str | None = None
    date_range: DateRange = DateRange()

    def __post_init__(self) -> None:
        if self.grouping not in GROUPINGS:
            raise InvalidInput(
                f"Invalid grouping '{self.grouping}': expected one of {', '.join(GROUPINGS)}"
            )


@dataclass(frozen=True)
class TeamSummaryFilters:
    project_id: int | None = None
    period: Period = "weekly"
    date_range: DateRange = DateRange()

    def __post_init__(self) -> None:
        if self.period not in PERIODS:
            raise InvalidInput(
                f"Invalid period '{self.period}': expected one of {', '.join(PERIODS)}"
            )


# =========================================================================
# Pure metric helpers
# =========================================================================


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes from the store as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _hours_between(start: datetime, end: datetime, task_id: Any = None) -> float:
    hours = (end - start).total_seconds() / SECONDS_PER_HOUR
    if hours < 0:
        # completed_at before created_at: clock skew or bad data
        logger.warning("negative_logged_time_clamped", task_id=task_id, hours=round(hours, 2))
        return 0.0
    return hours


def compute_logged_hours(
    status: str,
    created_at: datetime,
    completed_at: datetime | None,
    now: datetime,
    task_id: Any = None,
) -> tuple[float, bool]:
    """Derive (logged_hours, is_in_progress) for one task.

    Completed work is measured from creation to completion, in-progress work
    from creation to ``now``; anything else has logged nothing.
    """
    created = as_utc(created_at)
    if completed_at is not None:
        return _hours_between(created, as_utc(completed_at), task_id), False
    if status == "in-progress":
        return _hours_between(created, as_utc(now), task_id), True
    return 0.0, False


def format_percentage(count: int, total: int) -> str:
    if total <= 0:
        return "0.00"
    return f"{count / total * 100:.2f}"


def round_hours(value: float) -> float:
    return round(value, 2)


def count_statuses(statuses: Iterable[str]) -> dict[str, int]:
    counts = {"not-started": 0, "in-progress": 0, "completed": 0, "blocked": 0}
    for status in statuses:
        if status in counts:
            counts[status] += 1
    return counts


def summarize_completion(tasks: Sequence[Task], today: date) -> dict[str, Any]:
    """Status counts, percentages and projected count for a task set."""
    total = len(tasks)
    counts = count_statuses(t.status for t in tasks)
    projected = sum(
        1
        for t in tasks
        if t.status == "not-started" and t.start_date is not None and t.start_date > today
    )

    return {
        "totalTasks": total,
        "completedTasks": counts["completed"],
        "completedPercentage": format_percentage(counts["completed"], total),
        "inProgressTasks": counts["in-progress"],
        "inProgressPercentage": format_percentage(counts["in-progress"], total),
        "notStartedTasks": counts["not-started"],
        "notStartedPercentage": format_percentage(counts["not-started"], total),
        "blockedTasks": counts["blocked"],
        "blockedPercentage": format_percentage(counts["blocked"], total),
        "projectedTasks": projected,
    }


def group_logged_time(entries: Sequence[dict[str, Any]], grouping: Grouping) -> list[dict[str, Any]]:
    """Group logged-time entries and roll up per-group metrics.

    Groups are sorted by unrounded total hours, descending.
    """
    groups: dict[str, dict[str, Any]] = {}

    for entry in entries:
        if grouping == "project":
            key = entry["project_name"] or NO_PROJECT_GROUP
        else:
            key = entry["department"] or NO_DEPARTMENT_GROUP

        group = groups.setdefault(
            key,
            {
                "name": key,
                "total_hours": 0.0,
                "completed_tasks": 0,
                "in_progress_tasks": 0,
                "tasks": [],
            },
        )
        group["total_hours"] += entry["logged_hours"]
        if entry["status"] == "completed":
            group["completed_tasks"] += 1
        if entry["is_in_progress"]:
            group["in_progress_tasks"] += 1
        group["tasks"].append(entry)

    ordered = sorted(groups.values(), key=lambda g: g["total_hours"], reverse=True)

    return [
        {
            "name": group["name"],
            "total_hours": round_hours(group["total_hours"]),
            "completed_tasks": group["completed_tasks"],
            "in_progress_tasks": group["in_progress_tasks"],
            "avg_hours_per_task": (
                round_hours(group["total_hours"] / len(group["tasks"]))
                if group["tasks"]
                else 0
            ),
            "tasks": [
                {**task, "logged_hours": round_hours(task["logged_hours"])}
                for task in group["tasks"]
            ],
        }
        for group in ordered
    ]


def summarize_logged_time(entries: Sequence[dict[str, Any]], group_count: int) -> dict[str, Any]:
    total_hours = sum(e["logged_hours"] for e in entries)
    total_tasks = len(entries)
    return {
        "totalHours": round_hours(total_hours),
        "totalTasks": total_tasks,
        "completedTasks": sum(1 for e in entries if e["status"] == "completed"),
        "inProgressTasks": sum(1 for e in entries if e["is_in_progress"]),
        "avgHoursPerTask": round_hours(total_hours / total_tasks) if total_tasks else 0,
        "groupCount": group_count,
    }


def completion_trends(tasks: Sequence[Task], days: int, today: date) -> list[dict[str, Any]]:
    """Tasks created vs completed per day for the trailing ``days`` days."""
    if not tasks:
        return []

    created_by_day: dict[date, int] = {}
    completed_by_day: dict[date, int] = {}
    for task in tasks:
        created_day = as_utc(task.created_at).date()
        created_by_day[created_day] = created_by_day.get(created_day, 0) + 1
        if task.completed_at is not None:
            completed_day = as_utc(task.completed_at).date()
            completed_by_day[completed_day] = completed_by_day.get(completed_day, 0) + 1

    trends = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        trends.append(
            {
                "date": day.isoformat(),
                "completed_count": completed_by_day.get(day, 0),
                "total_count": created_by_day.get(day, 0),
            }
        )
    return trends


# =========================================================================
# Report service
# =========================================================================


class ReportService:
    """Builds read-only reports from task, project and staff rows."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def _fetch(self, operation: str, query: Select) -> list[Any]:
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error("report_fetch_failed", operation=operation, error=str(e))
            raise DataAccessError(operation, e) from e
        return list(result.scalars().all())

    # -- batched lookups --------------------------------------------------

    async def _live_projects(self, project_ids: Iterable[int | None]) -> dict[int, Project]:
        ids = {pid for pid in project_ids if pid is not None}
        if not ids:
            return {}
        projects = await self._fetch(
            "fetch projects",
            select(Project).where(Project.id.in_(ids), Project.not_deleted()),
        )
        return {p.id: p for p in projects}

    async def _active_assignees(self, task_ids: Iterable[int]) -> dict[int, list[TaskAssignee]]:
        """Active assignee rows per task, in assignment order."""
        ids = set(task_ids)
        if not ids:
            return {}
        rows = await self._fetch(
            "fetch task assignees",
            select(TaskAssignee)
            .where(TaskAssignee.task_id.in_(ids), TaskAssignee.is_active.is_(True))
            .order_by(TaskAssignee.id),
        )
        by_task: dict[int, list[TaskAssignee]] = {}
        for row in rows:
            by_task.setdefault(row.task_id, []).append(row)
        return by_task

    async def _staff(self, staff_ids: Iterable[int]) -> dict[int, Staff]:
        ids = set(staff_ids)
        if not ids:
            return {}
        staff = await self._fetch("fetch staff", select(Staff).where(Staff.id.in_(ids)))
        return {s.id: s for s in staff}

    async def _project_name(self, project_id: int | None) -> str | None:
        if project_id is None:
            return None
        projects = await self._live_projects([project_id])
        project = projects.get(project_id)
        return project.name if project else "Unknown Project"

    def _task_query(self, date_range: DateRange, project_id: int | None) -> Select:
        query = select(Task).options(raiseload(Task.assignees)).where(Task.not_deleted())
        query = date_range.apply(query)
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        return query.order_by(Task.created_at, Task.id)

    # -- task completion --------------------------------------------------

    async def task_completion_report(
        self,
        filters: TaskCompletionFilters,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Status breakdown of tasks created in the requested range."""
        now = now or datetime.now(timezone.utc)

        query = self._task_query(filters.date_range, filters.project_id)
        if filters.user_id is not None:
            assigned_to_user = select(TaskAssignee.task_id).where(
                TaskAssignee.assigned_to_staff_id == filters.user_id,
                TaskAssignee.is_active.is_(True),
            )
            query = query.where(
                or_(Task.creator_id == filters.user_id, Task.id.in_(assigned_to_user))
            )

        tasks = await self._fetch("fetch tasks", query)
        metrics = summarize_completion(tasks, as_utc(now).date())

        assignees_by_task = await self._active_assignees(t.id for t in tasks)
        staff = await self._staff(
            a.assigned_to_staff_id for rows in assignees_by_task.values() for a in rows
        )
        projects = await self._live_projects(t.project_id for t in tasks)

        enriched = []
        for task in tasks:
            project = projects.get(task.project_id) if task.project_id else None
            enriched.append(
                {
                    "id": task.id,
                    "title": task.title,
                    "status": task.status,
                    "start_date": task.start_date,
                    "due_date": task.due_date,
                    "completed_at": task.completed_at,
                    "created_at": task.created_at,
                    "project_id": task.project_id,
                    "creator_id": task.creator_id,
                    "assignees": [
                        {"id": s.id, "fullname": s.fullname}
                        for s in (
                            staff.get(a.assigned_to_staff_id)
                            for a in assignees_by_task.get(task.id, [])
                        )
                        if s is not None
                    ],
                    "project": {"id": project.id, "name": project.name} if project else None,
                }
            )

        user_name = None
        if filters.user_id is not None:
            user = (await self._staff([filters.user_id])).get(filters.user_id)
            user_name = user.fullname if user else "Unknown User"

        logger.info(
            "task_completion_report_generated",
            total_tasks=metrics["totalTasks"],
            user_id=filters.user_id,
            project_id=filters.project_id,
        )

        return {
            "metrics": metrics,
            "tasks": enriched,
            "filters": {
                "user_id": filters.user_id,
                "project_id": filters.project_id,
                **filters.date_range.as_filters(),
                "userName": user_name,
                "projectName": await self._project_name(filters.project_id),
            },
            "generatedAt": now.isoformat(),
        }

    # -- logged time ------------------------------------------------------

    async def logged_time_report(
        self,
        filters: LoggedTimeFilters,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Hours logged per task, grouped by project or department."""
        now = now or datetime.now(timezone.utc)

        tasks = await self._fetch(
            "fetch tasks", self._task_query(filters.date_range, filters.project_id)
        )

        projects = await self._live_projects(t.project_id for t in tasks)
        assignees_by_task = await self._active_assignees(t.id for t in tasks)
        first_assignee = {
            task_id: rows[0].assigned_to_staff_id for task_id, rows in assignees_by_task.items()
        }
        staff = await self._staff(first_assignee.values())

        entries = []
        for task in tasks:
            logged_hours, is_in_progress = compute_logged_hours(
                task.status, task.created_at, task.completed_at, now, task_id=task.id
            )
            project = projects.get(task.project_id) if task.project_id else None
            assignee = staff.get(first_assignee.get(task.id))
            entries.append(
                {
                    "id": task.id,
                    "title": task.title,
                    "status": task.status,
                    "created_at": task.created_at,
                    "completed_at": task.completed_at,
                    "project_id": task.project_id,
                    "project_name": project.name if project else None,
                    "department": assignee.department if assignee else None,
                    "logged_hours": logged_hours,
                    "is_in_progress": is_in_progress,
                }
            )

        # Department is derived per task, so it can only be filtered after enrichment
        if filters.department:
            entries = [e for e in entries if e["department"] == filters.department]

        grouped = group_logged_time(entries, filters.grouping)
        metrics = summarize_logged_time(entries, len(grouped))

        logger.info(
            "logged_time_report_generated",
            grouping=filters.grouping,
            total_tasks=metrics["totalTasks"],
            group_count=metrics["groupCount"],
        )

        return {
            "metrics": metrics,
            "groupedData": grouped,
            "filters": {
                "grouping": filters.grouping,
                "project_id": filters.project_id,
                "department": filters.department,
                **filters.date_range.as_filters(),
                "projectName": await self._project_name(filters.project_id),
                "departmentName": filters.department or None,
            },
            "generatedAt": now.isoformat(),
        }

    # -- team summary -----------------------------------------------------

    async def team_summary_report(
        self,
        filters: TeamSummaryFilters,
        viewer: Staff,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Per-member performance for one project, limited to visible staff."""
        now = now or datetime.now(timezone.utc)
        today = as_utc(now).date()

        if filters.project_id is None:
            raise InvalidInput("Project ID is required for team summary reports")

        project = (await self._live_projects([filters.project_id])).get(filters.project_id)
        if project is None:
            raise NotFound("Project not found")

        tasks = await self._fetch(
            "fetch tasks", self._task_query(filters.date_range, filters.project_id)
        )

        counts = count_statuses(t.status for t in tasks)
        status_breakdown = {
            "not_started": counts["not-started"],
            "in_progress": counts["in-progress"],
            "completed": counts["completed"],
            "blocked": counts["blocked"],
            "total": len(tasks),
        }
        overdue = [
            t for t in tasks
            if t.status != "completed" and t.due_date is not None and t.due_date < today
        ]

        trend_days = (
            self.settings.report_trend_days_weekly
            if filters.period == "weekly"
            else self.settings.report_trend_days_monthly
        )

        visible_staff_ids = set(await get_visible_staff_ids(self.db, viewer.department))
        assignees_by_task = await self._active_assignees(t.id for t in tasks)
        tasks_by_staff: dict[int, list[Task]] = {}
        tasks_by_id = {t.id: t for t in tasks}
        for task_id, rows in assignees_by_task.items():
            for row in rows:
                if row.assigned_to_staff_id in visible_staff_ids:
                    tasks_by_staff.setdefault(row.assigned_to_staff_id, []).append(
                        tasks_by_id[task_id]
                    )
        team = await self._staff(tasks_by_staff.keys())

        performance = []
        for staff_id, member in sorted(team.items(), key=lambda item: item[1].fullname):
            assigned = tasks_by_staff[staff_id]
            member_counts = count_statuses(t.status for t in assigned)
            hours = sum(
                _hours_between(as_utc(t.created_at), as_utc(t.completed_at), t.id)
                for t in assigned
                if t.completed_at is not None
            )
            total = len(assigned)
            performance.append(
                {
                    "staff_id": staff_id,
                    "fullname": member.fullname,
                    "tasks_completed": member_counts["completed"],
                    "tasks_in_progress": member_counts["in-progress"],
                    "tasks_not_started": member_counts["not-started"],
                    "tasks_blocked": member_counts["blocked"],
                    "total_tasks": total,
                    "completion_rate": (
                        round(member_counts["completed"] / total * 100, 1) if total else 0
                    ),
                    "total_hours_logged": round_hours(hours),
                }
            )

        top_performers = sorted(performance, key=lambda m: m["completion_rate"], reverse=True)[:5]

        team_task_total = sum(m["total_tasks"] for m in performance)
        avg_tasks = team_task_total / len(performance) if performance else 0
        workload = [
            {
                "staff_id": m["staff_id"],
                "fullname": m["fullname"],
                "task_count": m["total_tasks"],
                "percentage": (
                    round(m["total_tasks"] / team_task_total * 100, 2) if team_task_total else 0
                ),
                "variance_from_avg": round(m["total_tasks"] - avg_tasks, 2),
            }
            for m in performance
        ]

        logger.info(
            "team_summary_report_generated",
            project_id=project.id,
            team_size=len(performance),
            total_tasks=len(tasks),
        )

        return {
            "project": {
                "id": project.id,
                "name": project.name,
                "description": project.description,
            },
            "metrics": {
                "statusBreakdown": status_breakdown,
                "overallCompletionRate": (
                    round(counts["completed"] / len(tasks) * 100, 1) if tasks else 0
                ),
                "overdueTaskCount": len(overdue),
                "totalTeamMembers": len(performance),
                "avgTasksPerMember": round(avg_tasks, 1),
                "totalHoursLogged": round_hours(
                    sum(m["total_hours_logged"] for m in performance)
                ),
            },
            "completionTrends": completion_trends(tasks, trend_days, today),
            "topPerformers": top_performers,
            "teamPerformance": performance,
            "workloadDistribution": workload,
            "filters": {
                "project_id": filters.project_id,
                "period": filters.period,
                **filters.date_range.as_filters(),
                "projectName": project.name,
            },
            "generatedAt": now.isoformat(),
        }
