"""
Permission templates administrators can apply to a user.

- ``full``: every page and every action granted
- ``limited``: document, signing, report, settings and user-management pages
  denied outright, plus a few destructive actions on otherwise open pages
"""
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.modules import (
    ActionKey,
    ModuleKey,
    PAGE_MODULES,
    PageAction,
    PermissionType,
)
from app.features.permissions.repository import any_page_denied, upsert_permission_rows
from app.features.permissions.schemas import PermissionRowUpdate


RESTRICTED_PAGES: frozenset[str] = frozenset({
    "/documents",
    "/document-signing",
    "/reports",
    "/settings",
    "/user-management",
})

RESTRICTED_ACTIONS: dict[ModuleKey, frozenset[PageAction]] = {
    ModuleKey.EMPLOYEES: frozenset({PageAction.DELETE}),
    ModuleKey.JOB_APPLICATIONS: frozenset({
        PageAction.DELETE,
        PageAction.EDIT,
        PageAction.REFERENCE_MANUAL_PDF,
    }),
}


def _generate(limited: bool) -> List[PermissionRowUpdate]:
    rows: List[PermissionRowUpdate] = []
    for module in PAGE_MODULES:
        page_restricted = limited and module.path in RESTRICTED_PAGES
        rows.append(PermissionRowUpdate(
            permission_type=PermissionType.PAGE_ACCESS,
            permission_key=module.path,
            granted=not page_restricted,
        ))
        denied_actions = RESTRICTED_ACTIONS.get(module.key, frozenset()) if limited else frozenset()
        for action in module.actions:
            rows.append(PermissionRowUpdate(
                permission_type=PermissionType.PAGE_ACTION,
                permission_key=str(ActionKey(module.key, action)),
                granted=not page_restricted and action not in denied_actions,
            ))
    return rows


def generate_limited_permissions() -> List[PermissionRowUpdate]:
    return _generate(limited=True)


def generate_full_permissions() -> List[PermissionRowUpdate]:
    return _generate(limited=False)


TEMPLATES = {
    "limited": generate_limited_permissions,
    "full": generate_full_permissions,
}


async def apply_template(db: AsyncSession, user_id: str, template: str) -> int:
    """
    Upsert the template's rows for ``user_id``. Returns rows written.

    Raises:
        KeyError: unknown template name
    """
    rows = TEMPLATES[template]()
    return await upsert_permission_rows(db, user_id, rows)


async def has_limited_permissions(db: AsyncSession, user_id: str) -> bool:
    """True when any restricted page is explicitly denied for the user."""
    return await any_page_denied(db, user_id, RESTRICTED_PAGES)
