from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database.base import Base
from app.core.database.engine import import_models
from app.features.permissions.schemas import BranchAccessRow, PermissionRow
from app.features.permissions.store import PermissionFetchError
from app.features.users.models import User, UserRole


def perm(permission_type: str, permission_key: str, granted: bool | None = True) -> PermissionRow:
    return PermissionRow(permission_type=permission_type, permission_key=permission_key, granted=granted)


def branches(*branch_ids: str) -> list[BranchAccessRow]:
    return [BranchAccessRow(branch_id=branch_id) for branch_id in branch_ids]


def make_user(user_id: str = "u-1", role: str | None = "user", metadata_role: str | None = None) -> User:
    user = User(
        id=user_id,
        appwrite_id=f"aw-{user_id}",
        email=f"{user_id}@example.com",
        name=user_id,
        metadata_role=metadata_role,
        is_active=True,
    )
    if role is not None:
        user.role_assignment = UserRole(user_id=user_id, role=role)
    return user


@dataclass
class ManualTimer:
    delay: float
    callback: Callable[..., Any]
    args: tuple
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Records scheduled retries; tests fire them explicitly."""

    def __init__(self):
        self.timers: list[ManualTimer] = []

    def call_later(self, delay, callback, *args) -> ManualTimer:
        timer = ManualTimer(delay, callback, args)
        self.timers.append(timer)
        return timer

    @property
    def delays(self) -> list[float]:
        return [timer.delay for timer in self.timers]

    @property
    def pending(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled and not timer.fired]

    async def fire_next(self) -> None:
        timer = self.pending[0]
        timer.fired = True
        await timer.callback(*timer.args)

    async def run_all(self) -> None:
        while self.pending:
            await self.fire_next()


@dataclass
class FakeFetcher:
    permissions: list[PermissionRow] = field(default_factory=list)
    branch_access: list[BranchAccessRow] = field(default_factory=list)
    permission_failures: int = 0
    branch_failures: int = 0
    permission_calls: int = 0
    branch_calls: int = 0

    async def fetch_permissions(self, user_id: str) -> list[PermissionRow]:
        self.permission_calls += 1
        if self.permission_failures > 0:
            self.permission_failures -= 1
            raise PermissionFetchError("connection reset")
        return list(self.permissions)

    async def fetch_branch_access(self, user_id: str) -> list[BranchAccessRow]:
        self.branch_calls += 1
        if self.branch_failures > 0:
            self.branch_failures -= 1
            raise PermissionFetchError("branch table unavailable")
        return list(self.branch_access)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
