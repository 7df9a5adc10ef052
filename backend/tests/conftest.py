"""Shared fixtures: a throwaway SQLite database, an API client and row factories."""

import os
from datetime import datetime, timezone
from typing import Any

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taskhub.api.v1.auth import create_access_token  # noqa: E402
from taskhub.db.base import Base  # noqa: E402
from taskhub.db.session import get_db_session  # noqa: E402
from taskhub.main import app  # noqa: E402
from taskhub.models import Project, ProjectMember, Staff, Task, TaskAssignee  # noqa: E402


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(staff: Staff) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(staff.user_id)}"}


class Factory:
    """Inserts rows with sensible defaults and commits each one."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def _save(self, obj: Any) -> Any:
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj

    async def staff(
        self,
        fullname: str | None = None,
        department: str | None = None,
        is_manager: bool = False,
        is_admin: bool = False,
        **kwargs: Any,
    ) -> Staff:
        n = self._next()
        return await self._save(
            Staff(
                fullname=fullname or f"Staff {n}",
                email=kwargs.pop("email", f"staff{n}@example.com"),
                user_id=kwargs.pop("user_id", f"auth-{n}"),
                department=department,
                is_manager=is_manager,
                is_admin=is_admin,
                **kwargs,
            )
        )

    async def project(self, owner: Staff, name: str | None = None, **kwargs: Any) -> Project:
        return await self._save(
            Project(name=name or f"Project {self._next()}", owner_id=owner.id, **kwargs)
        )

    async def member(self, project: Project, staff: Staff, role: str = "member") -> ProjectMember:
        return await self._save(ProjectMember(project_id=project.id, staff_id=staff.id, role=role))

    async def task(
        self,
        creator: Staff,
        project: Project | None = None,
        title: str | None = None,
        created_at: datetime | None = None,
        **kwargs: Any,
    ) -> Task:
        task = Task(
            title=title or f"Task {self._next()}",
            creator_id=creator.id,
            project_id=project.id if project else None,
            **kwargs,
        )
        if created_at is not None:
            task.created_at = created_at
            task.updated_at = created_at
        return await self._save(task)

    async def assign(
        self,
        task: Task,
        staff: Staff,
        assigned_by: Staff | None = None,
        is_active: bool = True,
    ) -> TaskAssignee:
        return await self._save(
            TaskAssignee(
                task_id=task.id,
                assigned_to_staff_id=staff.id,
                assigned_by_staff_id=assigned_by.id if assigned_by else None,
                is_active=is_active,
            )
        )


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)
