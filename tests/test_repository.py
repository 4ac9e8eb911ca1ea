import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.features.permissions.models import Branch, UserBranchAccess, UserPermission
from app.features.permissions.repository import (
    SQLPermissionFetcher,
    any_page_denied,
    find_unknown_branches,
    list_all_branch_ids,
    list_permission_rows,
    replace_branch_access,
    upsert_permission_rows,
)
from app.features.permissions.schemas import PermissionRowUpdate
from app.features.permissions.store import PermissionFetchError


async def test_fetcher_reads_rows(db, session_factory):
    branch = Branch(name="North")
    db.add(branch)
    await db.flush()
    db.add_all([
        UserPermission(user_id="u-1", permission_type="page_access", permission_key="/leaves", granted=True),
        UserPermission(user_id="u-1", permission_type="page_access", permission_key="/reports", granted=None),
        UserPermission(user_id="u-2", permission_type="page_access", permission_key="/settings", granted=True),
        UserBranchAccess(user_id="u-1", branch_id=branch.id),
    ])
    await db.commit()

    fetcher = SQLPermissionFetcher(session_factory)
    rows = await fetcher.fetch_permissions("u-1")
    branch_rows = await fetcher.fetch_branch_access("u-1")

    assert {(row.permission_key, row.granted) for row in rows} == {("/leaves", True), ("/reports", False)}
    assert [row.branch_id for row in branch_rows] == [branch.id]


async def test_fetcher_wraps_database_errors():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    fetcher = SQLPermissionFetcher(async_sessionmaker(engine))
    try:
        with pytest.raises(PermissionFetchError):
            await fetcher.fetch_permissions("u-1")
        with pytest.raises(PermissionFetchError):
            await fetcher.fetch_branch_access("u-1")
    finally:
        await engine.dispose()


async def test_upsert_updates_existing_and_inserts_new(db):
    db.add(UserPermission(user_id="u-1", permission_type="page_access", permission_key="/leaves", granted=True))
    await db.commit()

    written = await upsert_permission_rows(db, "u-1", [
        PermissionRowUpdate(permission_type="page_access", permission_key="/leaves", granted=False),
        PermissionRowUpdate(permission_type="page_action", permission_key="leaves:approve"),
    ])
    await db.commit()

    rows = await list_permission_rows(db, "u-1")
    assert written == 2
    assert [(row.permission_key, row.granted) for row in rows] == [
        ("/leaves", False),
        ("leaves:approve", True),
    ]


async def test_replace_branch_access(db, session_factory):
    north, south = Branch(name="North"), Branch(name="South")
    db.add_all([north, south])
    await db.flush()
    await replace_branch_access(db, "u-1", [north.id])
    await db.commit()

    result = await replace_branch_access(db, "u-1", [south.id, south.id])
    await db.commit()

    fetched = [row.branch_id for row in await SQLPermissionFetcher(session_factory).fetch_branch_access("u-1")]
    assert result == [south.id]
    assert fetched == [south.id]
    assert await list_all_branch_ids(db) == [north.id, south.id]
    assert await find_unknown_branches(db, [north.id, "missing"]) == ["missing"]
    assert await find_unknown_branches(db, []) == []


async def test_any_page_denied(db):
    db.add_all([
        UserPermission(user_id="u-1", permission_type="page_access", permission_key="/reports", granted=False),
        UserPermission(user_id="u-2", permission_type="page_access", permission_key="/reports", granted=True),
        UserPermission(user_id="u-3", permission_type="page_action", permission_key="reports:view", granted=False),
    ])
    await db.commit()

    assert await any_page_denied(db, "u-1", ["/reports", "/settings"])
    assert not await any_page_denied(db, "u-2", ["/reports"])
    assert not await any_page_denied(db, "u-3", ["/reports"])

