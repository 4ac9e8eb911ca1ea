"""
Pure permission resolution over a loaded snapshot.

Every query fails closed: a key that is not present, or a snapshot that is
empty because nothing was loaded yet, resolves to False.
"""
from typing import Iterable, Mapping

from app.features.permissions.modules import (
    ActionKey,
    ActionLike,
    ModuleLike,
    PageAction,
    PermissionType,
    module_for_path,
)
from app.features.permissions.schemas import BranchAccessRow, PermissionRow, PermissionSnapshot
from app.utils import get_logger


log = get_logger(__name__)


def _type_value(permission_type: PermissionType | str) -> str:
    return permission_type.value if isinstance(permission_type, PermissionType) else permission_type


def index_permissions(rows: Iterable[PermissionRow]) -> Mapping[tuple[str, str], bool]:
    """``(type, key) -> granted``; the first row wins when a pair repeats."""
    index: dict[tuple[str, str], bool] = {}
    for row in rows:
        index.setdefault((row.permission_type, row.permission_key), row.granted)
    return index


class PermissionResolver:
    """
    Answers access questions for one snapshot.

    Usage:
        resolver = PermissionResolver(snapshot)
        resolver.has_page_access("/employees")
        resolver.has_page_action(ModuleKey.EMPLOYEES, PageAction.DELETE)
    """

    def __init__(self, snapshot: PermissionSnapshot | None = None):
        snapshot = snapshot or PermissionSnapshot.empty()
        self._index = index_permissions(snapshot.permissions)
        self._branches = frozenset(row.branch_id for row in snapshot.branch_access)

    @classmethod
    def from_rows(
        cls,
        permissions: Iterable[PermissionRow],
        branch_access: Iterable[BranchAccessRow] = (),
    ) -> "PermissionResolver":
        return cls(PermissionSnapshot(permissions=tuple(permissions), branch_access=tuple(branch_access)))

    def has_permission(self, permission_type: PermissionType | str, permission_key: str) -> bool:
        return self._index.get((_type_value(permission_type), permission_key), False)

    def has_page_access(self, path: str) -> bool:
        explicit = self._index.get((PermissionType.PAGE_ACCESS.value, path))
        if explicit is not None:
            # an explicit row decides, including an explicit denial
            return explicit
        module = module_for_path(path)
        log.debug(f"No page_access row for {path!r}, falling back to {module.value}:view")
        return self.has_page_action(module, PageAction.VIEW)

    def has_feature_access(self, feature: str) -> bool:
        return self.has_permission(PermissionType.FEATURE_ACCESS, feature)

    def has_page_action(self, module: ModuleLike, action: ActionLike) -> bool:
        return self.has_permission(PermissionType.PAGE_ACTION, str(ActionKey(module, action)))

    def accessible_branches(self) -> frozenset[str]:
        return self._branches
