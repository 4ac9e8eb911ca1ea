from conftest import FakeFetcher, ManualScheduler, branches, perm

from app.features.permissions.access import PermissionAccess
from app.features.permissions.store import PermissionStore


async def loaded_store(fetcher) -> PermissionStore:
    store = PermissionStore("u-1", fetcher, scheduler=ManualScheduler(), max_retries=0, retry_delay=1.0)
    await store.refetch()
    return store


async def test_admin_passes_every_check_with_empty_store():
    store = await loaded_store(FakeFetcher(permission_failures=1))
    access = PermissionAccess(store, is_admin=True, all_branches=["b-1", "b-2"])

    assert store.failed
    assert access.has_page_access("/settings")
    assert access.has_feature_access("anything")
    assert access.has_page_action("employees", "delete")
    assert access.has_permission("page_action", "reports:export")
    assert access.accessible_branches() == ("b-1", "b-2")
    assert not access.is_branch_restricted()


async def test_non_admin_answered_by_store():
    store = await loaded_store(FakeFetcher(permissions=[perm("page_action", "leaves:approve")]))
    access = PermissionAccess(store, is_admin=False)

    assert access.has_page_action("leaves", "approve")
    assert not access.has_page_action("leaves", "delete")
    assert not access.has_page_access("/leaves")


async def test_assigned_branches_restrict():
    store = await loaded_store(FakeFetcher(branch_access=branches("b-2", "b-1")))
    access = PermissionAccess(store, is_admin=False, all_branches=["b-1", "b-2", "b-3"])

    assert access.accessible_branches() == ("b-1", "b-2")
    assert access.is_branch_restricted()


async def test_no_assignments_means_all_branches_after_success():
    store = await loaded_store(FakeFetcher())
    access = PermissionAccess(store, is_admin=False, all_branches=["b-1", "b-2"])

    assert access.accessible_branches() == ("b-1", "b-2")
    assert not access.is_branch_restricted()


async def test_failed_load_sees_no_branches():
    store = await loaded_store(FakeFetcher(permission_failures=1))
    access = PermissionAccess(store, is_admin=False, all_branches=["b-1", "b-2"])

    assert access.failed
    assert access.error == "connection reset"
    assert access.accessible_branches() == ()
