"""Role checks and department visibility."""

from types import SimpleNamespace

import pytest

from taskhub.exceptions import Forbidden, NoStaffRecord
from taskhub.services.access_control import (
    ensure_can_complete_task,
    ensure_not_self_role_change,
    has_sufficient_role,
    require_role,
    resolve_staff,
)
from taskhub.services.department_hierarchy import (
    can_view_department,
    get_visible_departments,
    get_visible_staff_ids,
)


def staff(id=1, role="staff"):
    return SimpleNamespace(id=id, role=role)


def task(creator_id, assignees=()):
    return SimpleNamespace(
        creator_id=creator_id,
        assignees=[
            SimpleNamespace(assigned_to_staff_id=sid, is_active=active)
            for sid, active in assignees
        ],
    )


@pytest.mark.parametrize(
    "role,required,allowed",
    [
        ("admin", "manager", True),
        ("manager", "manager", True),
        ("staff", "manager", False),
        ("manager", "admin", False),
        ("unknown", "staff", False),
    ],
)
def test_role_hierarchy(role, required, allowed):
    assert has_sufficient_role(role, required) is allowed


def test_require_role_uses_custom_message():
    with pytest.raises(Forbidden) as exc_info:
        require_role(staff(role="staff"), "admin", "Admins only")

    assert exc_info.value.to_dict() == {"statusCode": 403, "statusMessage": "Admins only"}


def test_self_role_change_blocked_but_profile_edit_allowed():
    admin = staff(id=7, role="admin")

    with pytest.raises(Forbidden):
        ensure_not_self_role_change(admin, 7, {"is_manager": False})
    ensure_not_self_role_change(admin, 7, {"fullname": "New Name"})
    ensure_not_self_role_change(admin, 8, {"is_admin": True})


def test_completion_rights():
    ensure_can_complete_task(staff(id=1), task(creator_id=1))
    ensure_can_complete_task(staff(id=2), task(creator_id=1, assignees=[(2, True)]))
    ensure_can_complete_task(staff(id=3, role="manager"), task(creator_id=1))

    with pytest.raises(Forbidden):
        ensure_can_complete_task(staff(id=2), task(creator_id=1, assignees=[(2, False)]))


async def test_resolve_staff_without_record(db_session):
    with pytest.raises(NoStaffRecord):
        await resolve_staff(db_session, "missing-identity")


class TestDepartmentHierarchy:
    def test_director_sees_division(self):
        visible = get_visible_departments("Sales Director")

        assert visible == ["Sales Director", "Sales Manager", "Account Managers"]

    def test_unmapped_department_sees_itself(self):
        assert get_visible_departments("Research") == ["Research"]

    def test_no_department_sees_nothing(self):
        assert get_visible_departments(None) == []
        assert can_view_department(None, "IT Team") is False

    def test_visibility_is_downward_only(self):
        assert can_view_department("Managing Director", "Call Centre") is True
        assert can_view_department("Finance Managers", "Finance Executive") is True
        assert can_view_department("Finance Executive", "Finance Managers") is False

    async def test_visible_staff_ids(self, factory):
        director = await factory.staff(department="IT Director")
        team = await factory.staff(department="IT Team")
        await factory.staff(department="Finance Director")

        ids = await get_visible_staff_ids(factory.session, "IT Director")

        assert sorted(ids) == sorted([director.id, team.id])
