"""
Administrator-aware view over a user's permission store.

Administrators pass every page, feature and action check and see every
branch. Everyone else is answered by their store.
"""
from typing import Sequence

from app.features.permissions.modules import ActionLike, ModuleLike, PermissionType
from app.features.permissions.store import FetchStatus, PermissionStore


class PermissionAccess:
    """
    Usage:
        access = PermissionAccess(store, is_admin=user.is_admin, all_branches=branch_ids)
        if access.has_page_action("leaves", "approve"):
            ...
    """

    def __init__(self, store: PermissionStore, is_admin: bool, all_branches: Sequence[str] = ()):
        self.store = store
        self.is_admin = is_admin
        self._all_branches = tuple(all_branches)

    @property
    def loading(self) -> bool:
        return self.store.loading

    @property
    def error(self) -> str | None:
        return self.store.error

    @property
    def failed(self) -> bool:
        return self.store.failed

    def has_permission(self, permission_type: PermissionType | str, permission_key: str) -> bool:
        return self.is_admin or self.store.has_permission(permission_type, permission_key)

    def has_page_access(self, path: str) -> bool:
        return self.is_admin or self.store.has_page_access(path)

    def has_feature_access(self, feature: str) -> bool:
        return self.is_admin or self.store.has_feature_access(feature)

    def has_page_action(self, module: ModuleLike, action: ActionLike) -> bool:
        return self.is_admin or self.store.has_page_action(module, action)

    def accessible_branches(self) -> tuple[str, ...]:
        """
        Branch ids whose data this user may see.

        A user without any branch assignment is unrestricted, but only once
        the load succeeded; a failed or pending load yields no branches.
        """
        if self.is_admin:
            return self._all_branches
        assigned = self.store.accessible_branches()
        if assigned:
            return tuple(sorted(assigned))
        if self.store.status == FetchStatus.SUCCESS:
            return self._all_branches
        return ()

    def is_branch_restricted(self) -> bool:
        return not self.is_admin and bool(self.store.accessible_branches())
