from app.features.permissions.modules import PAGE_MODULES
from app.features.permissions.repository import list_permission_rows
from app.features.permissions.resolver import PermissionResolver
from app.features.permissions.schemas import PermissionRow
from app.features.permissions.templates import (
    apply_template,
    generate_full_permissions,
    generate_limited_permissions,
    has_limited_permissions,
)


def resolver_for(rows) -> PermissionResolver:
    return PermissionResolver.from_rows(
        PermissionRow(permission_type=row.permission_type.value, permission_key=row.permission_key, granted=row.granted)
        for row in rows
    )


def test_full_template_grants_everything():
    rows = generate_full_permissions()
    expected = sum(1 + len(module.actions) for module in PAGE_MODULES)
    assert len(rows) == expected
    assert all(row.granted for row in rows)


def test_limited_template_denies_restricted_pages_and_actions():
    rows = generate_limited_permissions()
    resolver = resolver_for(rows)

    assert len(rows) == len(generate_full_permissions())
    for path in ("/documents", "/document-signing", "/reports", "/settings", "/user-management"):
        assert not resolver.has_page_access(path), path
    assert not resolver.has_page_action("documents", "view")
    assert not resolver.has_page_action("employees", "delete")
    assert not resolver.has_page_action("job-applications", "edit")
    assert not resolver.has_page_action("job-applications", "reference-manual-pdf")

    assert resolver.has_page_access("/employees")
    assert resolver.has_page_action("employees", "edit")
    assert resolver.has_page_action("job-applications", "download-pdf")
    assert resolver.has_page_action("leaves", "approve")


async def test_apply_template_and_detect_limited(db):
    written = await apply_template(db, "u-1", "limited")
    await db.commit()
    assert written == len(generate_limited_permissions())
    assert await has_limited_permissions(db, "u-1")

    await apply_template(db, "u-1", "full")
    await db.commit()
    assert not await has_limited_permissions(db, "u-1")
    assert len(await list_permission_rows(db, "u-1")) == written


async def test_user_without_rows_is_not_limited(db):
    assert not await has_limited_permissions(db, "nobody")
