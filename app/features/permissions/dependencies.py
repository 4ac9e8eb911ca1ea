"""
FastAPI dependencies for permission checks.

Implements:
- access to the per-user permission store registry
- the route guard dependency (``require_page``)
- page action / feature dependencies for individual endpoints
- audit logging helper
"""
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user, get_optional_user
from app.features.users.models import User
from app.features.permissions.access import PermissionAccess
from app.features.permissions.guard import (
    AuthState,
    NO_PERMISSIONS,
    RouteGuardRejection,
    evaluate_route,
)
from app.features.permissions.models import AuditLog
from app.features.permissions.modules import ActionKey, ActionLike, ModuleLike
from app.features.permissions.repository import list_all_branch_ids
from app.features.permissions.store import PermissionStore, PermissionStoreRegistry
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Store access
# ============================================================================

def get_permission_registry(request: Request) -> PermissionStoreRegistry:
    """The registry created at startup and kept on ``app.state``."""
    return request.app.state.permission_registry


async def get_permission_store(
    user: Annotated[User, Depends(get_current_user)],
    registry: Annotated[PermissionStoreRegistry, Depends(get_permission_registry)],
) -> PermissionStore:
    """
    The signed-in user's store, opened (and loaded) on first use.

    Raises:
        HTTPException: 403 for employee accounts, which never get a store
    """
    if user.is_restricted_account:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employee accounts have no admin portal permissions"
        )
    return await registry.open(user.id)


async def build_access(db: AsyncSession, user: User, store: PermissionStore) -> PermissionAccess:
    """Wrap ``store`` with the administrator short-circuit and the branch list it needs."""
    all_branches: list[str] = []
    if user.is_admin or not store.accessible_branches():
        all_branches = await list_all_branch_ids(db)
    return PermissionAccess(store, is_admin=user.is_admin, all_branches=all_branches)


async def get_permission_access(
    user: Annotated[User, Depends(get_current_user)],
    store: Annotated[PermissionStore, Depends(get_permission_store)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PermissionAccess:
    return await build_access(db, user, store)


# ============================================================================
# Route guard
# ============================================================================

def require_page(required_page: Optional[str] = None):
    """
    Guard an admin-portal endpoint.

    Usage:
        @router.get("/employees")
        async def list_employees(
            access: PermissionAccess = Depends(require_page("/employees"))
        ):
            ...

    Returns:
        Dependency returning the caller's PermissionAccess when allowed

    Raises:
        RouteGuardRejection: for every other outcome; rendered by the
        exception handler in app.main
    """
    async def guard_dependency(
        request: Request,
        user: Annotated[Optional[User], Depends(get_optional_user)],
        registry: Annotated[PermissionStoreRegistry, Depends(get_permission_registry)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> PermissionAccess:
        store: Optional[PermissionStore] = None
        if user is not None and not user.is_restricted_account:
            store = await registry.open(user.id)

        decision = evaluate_route(
            AuthState(user=user),
            store if store is not None else NO_PERMISSIONS,
            required_page=required_page,
            current_path=request.url.path,
        )
        if not decision.allowed:
            raise RouteGuardRejection(decision)

        return await build_access(db, user, store)

    return guard_dependency


def require_page_action(module: ModuleLike, action: ActionLike, required_page: Optional[str] = None):
    """
    Require a ``page_action`` permission on top of the route guard.

    Usage:
        @router.post("/leaves/{leave_id}/approve")
        async def approve(access = Depends(require_page_action(ModuleKey.LEAVES, PageAction.APPROVE))):
            ...

    Raises:
        HTTPException: 403 if the action is not granted
    """
    async def permission_dependency(
        access: Annotated[PermissionAccess, Depends(require_page(required_page))],
    ) -> PermissionAccess:
        if not access.has_page_action(module, action):
            key = ActionKey(module, action)
            log.debug(f"User {access.store.user_id} denied page action {key}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {key}"
            )
        return access

    return permission_dependency


def require_feature(feature: str):
    """
    Require a ``feature_access`` permission on top of the route guard.

    Raises:
        HTTPException: 403 if the feature is not granted
    """
    async def permission_dependency(
        access: Annotated[PermissionAccess, Depends(require_page())],
    ) -> PermissionAccess:
        if not access.has_feature_access(feature):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: feature {feature}"
            )
        return access

    return permission_dependency


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> AuditLog:
    """
    Record a permission change.

    Args:
        db: Database session
        user_id: Administrator performing the change
        action: e.g. "upsert_rows", "apply_template", "replace_branches"
        resource_type: Type of resource changed (e.g. "user_permissions")
        resource_id: User whose rows changed
        details: Additional details
        ip_address: Client IP address
        user_agent: Client user agent
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    log.info(
        f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id}"
    )

    return audit_log
