"""Admin staff management endpoints."""

import pytest

from tests.conftest import auth_headers

USERS = "/api/v1/admin/users"


@pytest.fixture
async def admin(factory):
    return await factory.staff("Ada Admin", is_admin=True)


async def test_non_admin_is_forbidden(client, factory):
    manager = await factory.staff(is_manager=True)

    response = await client.get(USERS, headers=auth_headers(manager))

    assert response.status_code == 403
    assert response.json()["statusMessage"] == "Access denied. Admin privileges required."


async def test_lists_staff_by_name(client, factory, admin):
    await factory.staff("Zed")
    await factory.staff("Bea", is_manager=True)

    response = await client.get(USERS, headers=auth_headers(admin))

    data = response.json()["data"]
    assert [s["fullname"] for s in data] == ["Ada Admin", "Bea", "Zed"]
    assert [s["role"] for s in data] == ["admin", "manager", "staff"]


async def test_promotes_staff(client, factory, admin):
    target = await factory.staff("Tess")

    response = await client.put(
        f"{USERS}/{target.id}",
        json={"is_manager": True, "department": "IT Team"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_manager"] is True
    assert data["role"] == "manager"
    assert data["department"] == "IT Team"


async def test_cannot_change_own_role_flags(client, admin):
    response = await client.put(
        f"{USERS}/{admin.id}", json={"is_admin": False}, headers=auth_headers(admin)
    )

    assert response.status_code == 403


async def test_can_edit_own_profile(client, admin):
    response = await client.put(
        f"{USERS}/{admin.id}", json={"contact_number": "555-0100"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["data"]["contact_number"] == "555-0100"


async def test_empty_update_is_400(client, factory, admin):
    target = await factory.staff()

    response = await client.put(f"{USERS}/{target.id}", json={}, headers=auth_headers(admin))

    assert response.status_code == 400


async def test_missing_staff_is_404(client, admin):
    response = await client.put(
        f"{USERS}/9999", json={"fullname": "Ghost"}, headers=auth_headers(admin)
    )

    assert response.status_code == 404
