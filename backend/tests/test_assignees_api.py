"""Task assignee endpoints."""

import pytest

from tests.conftest import auth_headers, utc


def assignees_url(task_id: int) -> str:
    return f"/api/v1/tasks/{task_id}/assignees"


@pytest.fixture
async def lead(factory):
    return await factory.staff("Lee Lead", department="Developers")


async def test_assign_and_list(client, factory, lead):
    a = await factory.staff("Ari", department="Developers")
    b = await factory.staff("Bo", department="Support Team")
    task = await factory.task(lead)

    response = await client.post(
        assignees_url(task.id),
        json={"staff_ids": [a.id, b.id, a.id]},
        headers=auth_headers(lead),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert [row["assigned_to_staff_id"] for row in data] == [a.id, b.id]
    assert all(row["assigned_by_staff_id"] == lead.id for row in data)
    assert data[1]["department"] == "Support Team"

    listed = await client.get(assignees_url(task.id), headers=auth_headers(lead))
    assert [row["fullname"] for row in listed.json()["data"]] == ["Ari", "Bo"]


async def test_inactive_mapping_is_reactivated(client, factory, lead):
    former = await factory.staff()
    task = await factory.task(lead)
    mapping = await factory.assign(task, former, is_active=False)

    response = await client.post(
        assignees_url(task.id), json={"staff_ids": [former.id]}, headers=auth_headers(lead)
    )

    [row] = response.json()["data"]
    assert row["id"] == mapping.id
    assert row["is_active"] is True


async def test_more_than_five_assignees_rejected(client, factory, lead):
    task = await factory.task(lead)
    for _ in range(4):
        await factory.assign(task, await factory.staff())
    extra = [(await factory.staff()).id for _ in range(2)]

    response = await client.post(
        assignees_url(task.id), json={"staff_ids": extra}, headers=auth_headers(lead)
    )

    assert response.status_code == 400
    assert response.json()["statusMessage"] == "Maximum 5 assignees allowed per task"


async def test_already_active_assignees_do_not_count_twice(client, factory, lead):
    task = await factory.task(lead)
    staff = [await factory.staff() for _ in range(5)]
    for member in staff:
        await factory.assign(task, member)

    response = await client.post(
        assignees_url(task.id), json={"staff_ids": [staff[0].id]}, headers=auth_headers(lead)
    )

    assert response.status_code == 200
    assert len(response.json()["data"]) == 5


async def test_unknown_staff_rejected(client, factory, lead):
    task = await factory.task(lead)

    response = await client.post(
        assignees_url(task.id), json={"staff_ids": [lead.id, 4242]}, headers=auth_headers(lead)
    )

    assert response.status_code == 400
    assert response.json()["data"] == {"staff_ids": [4242]}


async def test_empty_staff_ids_rejected(client, factory, lead):
    task = await factory.task(lead)

    response = await client.post(
        assignees_url(task.id), json={"staff_ids": []}, headers=auth_headers(lead)
    )

    assert response.status_code == 400


async def test_deleted_task_is_404(client, factory, lead):
    task = await factory.task(lead, deleted_at=utc(2025, 1, 1))

    post = await client.post(
        assignees_url(task.id), json={"staff_ids": [lead.id]}, headers=auth_headers(lead)
    )
    get = await client.get(assignees_url(task.id), headers=auth_headers(lead))

    assert post.status_code == 404
    assert get.status_code == 404
