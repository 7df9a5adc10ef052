"""Completing tasks and growing recurrence chains."""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from taskhub.models import Task, TaskAssignee
from taskhub.services.recurring_task import RecurringTaskService
from tests.conftest import auth_headers, utc


def complete_url(task_id: int) -> str:
    return f"/api/v1/tasks/{task_id}/complete"


@pytest.fixture
async def creator(factory):
    return await factory.staff("Casey Creator", department="Developers")


async def live_tasks(db_session) -> list[Task]:
    db_session.expire_all()
    result = await db_session.execute(select(Task).where(Task.not_deleted()).order_by(Task.id))
    return list(result.scalars().all())


async def test_one_off_task_is_completed(client, factory, creator, db_session):
    task = await factory.task(creator, status="in-progress")

    response = await client.post(complete_url(task.id), headers=auth_headers(creator))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Task completed"
    assert body["data"]["task"]["status"] == "completed"
    assert body["data"]["task"]["completed_at"] is not None
    assert body["data"]["nextTask"] is None
    assert len(await live_tasks(db_session)) == 1


async def test_monthly_task_spawns_next_occurrence(client, factory, creator, db_session):
    assignee = await factory.staff("Avery Assignee")
    task = await factory.task(
        creator,
        title="Month-end close",
        repeat_frequency="monthly",
        start_date=date(2025, 1, 31),
        due_date=date(2025, 2, 1),
        priority="high",
    )
    await factory.assign(task, assignee, assigned_by=creator)

    response = await client.post(complete_url(task.id), headers=auth_headers(assignee))

    assert response.status_code == 200
    data = response.json()["data"]
    next_task = data["nextTask"]
    assert next_task["title"] == "Month-end close"
    assert next_task["status"] == "not-started"
    assert next_task["completed_at"] is None
    assert next_task["start_date"] == "2025-03-01"
    assert next_task["due_date"] == "2025-03-02"
    assert next_task["priority"] == "high"
    assert next_task["repeat_frequency"] == "monthly"
    assert next_task["parent_task_id"] == task.id
    assert data["assigneesCopied"] == 1
    assert data.get("assigneeCopyError") is None

    copied = await db_session.execute(
        select(TaskAssignee).where(TaskAssignee.task_id == next_task["id"])
    )
    [row] = copied.scalars().all()
    assert row.assigned_to_staff_id == assignee.id
    assert row.assigned_by_staff_id == creator.id
    assert row.is_active is True


async def test_chain_keeps_root_parent(client, factory, creator):
    root = await factory.task(
        creator,
        repeat_frequency="daily",
        start_date=date(2025, 1, 1),
        due_date=date(2025, 1, 1),
    )

    first = await client.post(complete_url(root.id), headers=auth_headers(creator))
    second_id = first.json()["data"]["nextTask"]["id"]
    second = await client.post(complete_url(second_id), headers=auth_headers(creator))

    third = second.json()["data"]["nextTask"]
    assert third["parent_task_id"] == root.id
    assert third["start_date"] == "2025-01-03"


async def test_inactive_assignees_not_copied(client, factory, creator, db_session):
    former = await factory.staff()
    task = await factory.task(
        creator,
        repeat_frequency="weekly",
        start_date=date(2025, 1, 1),
        due_date=date(2025, 1, 2),
    )
    await factory.assign(task, former, is_active=False)

    response = await client.post(complete_url(task.id), headers=auth_headers(creator))

    assert response.json()["data"]["assigneesCopied"] == 0


async def test_assignee_copy_failure_keeps_completion(
    client, factory, creator, db_session, monkeypatch
):
    assignee = await factory.staff()
    task = await factory.task(
        creator,
        repeat_frequency="weekly",
        start_date=date(2025, 1, 6),
        due_date=date(2025, 1, 10),
    )
    await factory.assign(task, assignee)

    async def fail(self, rows):
        raise SQLAlchemyError("simulated assignee insert failure")

    monkeypatch.setattr(RecurringTaskService, "_insert_assignee_copies", fail)

    response = await client.post(complete_url(task.id), headers=auth_headers(creator))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["task"]["status"] == "completed"
    assert data["nextTask"]["start_date"] == "2025-01-17"
    assert data["assigneesCopied"] == 0
    assert "simulated assignee insert failure" in data["assigneeCopyError"]

    tasks = await live_tasks(db_session)
    assert [t.status for t in tasks] == ["completed", "not-started"]


async def test_already_completed_is_400(client, factory, creator):
    task = await factory.task(creator, status="completed", completed_at=utc(2025, 1, 1))

    response = await client.post(complete_url(task.id), headers=auth_headers(creator))

    assert response.status_code == 400
    assert response.json()["statusMessage"] == "Task is already completed"


async def test_missing_or_deleted_task_is_404(client, factory, creator):
    deleted = await factory.task(creator, deleted_at=utc(2025, 1, 1))

    for task_id in (deleted.id, 9999):
        response = await client.post(complete_url(task_id), headers=auth_headers(creator))
        assert response.status_code == 404


async def test_unrelated_staff_cannot_complete(client, factory, creator):
    stranger = await factory.staff()
    task = await factory.task(creator)

    response = await client.post(complete_url(task.id), headers=auth_headers(stranger))

    assert response.status_code == 403


async def test_manager_can_complete_any_task(client, factory, creator):
    manager = await factory.staff(is_manager=True)
    task = await factory.task(creator)

    response = await client.post(complete_url(task.id), headers=auth_headers(manager))

    assert response.status_code == 200


async def test_service_reports_copy_count(db_session, factory, creator):
    a, b = await factory.staff(), await factory.staff()
    task = await factory.task(
        creator,
        repeat_frequency="yearly",
        start_date=date(2024, 2, 29),
        due_date=date(2024, 2, 29),
    )
    await factory.assign(task, a)
    await factory.assign(task, b)

    result = await RecurringTaskService(db_session).complete_task(
        task.id, creator, now=utc(2025, 3, 1, 12, 0)
    )

    assert result.assignees_copied == 2
    assert result.next_task.start_date == date(2025, 2, 28)
    assert result.task.completed_at is not None
