"""
Permission API routes.

``/me/*`` answers questions about the signed-in user from their permission
store; ``/users/{user_id}/*`` lets administrators manage another user's rows,
branch access and templates.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user, get_current_admin_user
from app.features.users.models import User
from app.features.permissions.access import PermissionAccess
from app.features.permissions.dependencies import (
    create_audit_log,
    get_permission_access,
    get_permission_registry,
    get_permission_store,
)
from app.features.permissions.models import AuditLog
from app.features.permissions.modules import ActionKey, PAGE_MODULES, PermissionType
from app.features.permissions.repository import (
    find_unknown_branches,
    list_permission_rows,
    replace_branch_access,
    upsert_permission_rows,
)
from app.features.permissions.schemas import (
    AccessCheckResponse,
    AccessibleBranchesResponse,
    ApplyTemplateRequest,
    AuditLogListResponse,
    AuditLogResponse,
    BranchAccessUpdate,
    LimitedStatusResponse,
    PageModuleResponse,
    PermissionRow,
    PermissionRowsUpdate,
    PermissionStateResponse,
    TemplateAppliedResponse,
)
from app.features.permissions.store import PermissionStore, PermissionStoreRegistry
from app.features.permissions.templates import apply_template, has_limited_permissions
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def _state_response(user: User, store: PermissionStore) -> PermissionStateResponse:
    return PermissionStateResponse(
        user_id=user.id,
        status=store.status.value,
        attempt=store.attempt,
        loading=store.loading,
        error=store.error,
        is_admin=user.is_admin,
        permissions=list(store.permissions),
        branch_access=list(store.branch_access),
    )


async def _get_target_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ============================================================================
# Current user
# ============================================================================

@router.get("/me", response_model=PermissionStateResponse)
async def get_my_permissions(
    user: Annotated[User, Depends(get_current_user)],
    store: Annotated[PermissionStore, Depends(get_permission_store)],
):
    """Snapshot of the caller's permission store."""
    return _state_response(user, store)


@router.post("/me/refetch", response_model=PermissionStateResponse)
async def refetch_my_permissions(
    user: Annotated[User, Depends(get_current_user)],
    store: Annotated[PermissionStore, Depends(get_permission_store)],
):
    """Reload the caller's rows, restarting the retry sequence."""
    await store.refetch()
    return _state_response(user, store)


@router.get("/me/page-access", response_model=AccessCheckResponse)
async def check_page_access(
    access: Annotated[PermissionAccess, Depends(get_permission_access)],
    path: str = Query(..., min_length=1),
):
    return AccessCheckResponse(
        permission_type=PermissionType.PAGE_ACCESS,
        key=path,
        granted=access.has_page_access(path),
    )


@router.get("/me/feature-access", response_model=AccessCheckResponse)
async def check_feature_access(
    access: Annotated[PermissionAccess, Depends(get_permission_access)],
    feature: str = Query(..., min_length=1),
):
    return AccessCheckResponse(
        permission_type=PermissionType.FEATURE_ACCESS,
        key=feature,
        granted=access.has_feature_access(feature),
    )


@router.get("/me/page-action", response_model=AccessCheckResponse)
async def check_page_action(
    access: Annotated[PermissionAccess, Depends(get_permission_access)],
    module: str = Query(..., min_length=1),
    action: str = Query(..., min_length=1),
):
    key = ActionKey.parse(f"{module}:{action}")
    return AccessCheckResponse(
        permission_type=PermissionType.PAGE_ACTION,
        key=str(key),
        granted=access.has_page_action(key.module, key.action),
    )


@router.get("/me/branches", response_model=AccessibleBranchesResponse)
async def get_my_branches(
    access: Annotated[PermissionAccess, Depends(get_permission_access)],
):
    return AccessibleBranchesResponse(
        branch_ids=list(access.accessible_branches()),
        restricted=access.is_branch_restricted(),
    )


@router.get("/modules", response_model=List[PageModuleResponse])
async def list_page_modules(
    _user: Annotated[User, Depends(get_current_user)],
):
    """Catalog of page modules and their actions."""
    return [
        PageModuleResponse(
            name=module.name,
            key=module.key.value,
            path=module.path,
            actions=[action.value for action in module.actions],
        )
        for module in PAGE_MODULES
    ]


# ============================================================================
# Administration
# ============================================================================

@router.get("/users/{user_id}/rows", response_model=List[PermissionRow])
async def get_user_rows(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _admin: Annotated[User, Depends(get_current_admin_user)],
):
    """All permission rows stored for a user (admin only)."""
    await _get_target_user(db, user_id)
    return [PermissionRow.model_validate(row) for row in await list_permission_rows(db, user_id)]


@router.put("/users/{user_id}/rows", response_model=List[PermissionRow])
async def upsert_user_rows(
    user_id: str,
    update: PermissionRowsUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
    registry: Annotated[PermissionStoreRegistry, Depends(get_permission_registry)],
):
    """Create or overwrite permission rows for a user (admin only)."""
    await _get_target_user(db, user_id)
    written = await upsert_permission_rows(db, user_id, update.rows)
    await db.commit()

    await create_audit_log(
        db=db,
        user_id=admin.id,
        action="upsert_rows",
        resource_type="user_permissions",
        resource_id=user_id,
        details={"rows": [row.model_dump(mode="json") for row in update.rows], "written": written},
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    await registry.refetch(user_id)

    return [PermissionRow.model_validate(row) for row in await list_permission_rows(db, user_id)]


@router.put("/users/{user_id}/branches", response_model=AccessibleBranchesResponse)
async def replace_user_branches(
    user_id: str,
    update: BranchAccessUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
    registry: Annotated[PermissionStoreRegistry, Depends(get_permission_registry)],
):
    """Replace a user's branch access (admin only)."""
    await _get_target_user(db, user_id)
    unknown = await find_unknown_branches(db, update.branch_ids)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown branches: {', '.join(unknown)}"
        )

    branch_ids = await replace_branch_access(db, user_id, update.branch_ids)
    await db.commit()

    await create_audit_log(
        db=db,
        user_id=admin.id,
        action="replace_branches",
        resource_type="user_branch_access",
        resource_id=user_id,
        details={"branch_ids": branch_ids},
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    await registry.refetch(user_id)

    return AccessibleBranchesResponse(branch_ids=branch_ids, restricted=bool(branch_ids))


@router.post("/users/{user_id}/template", response_model=TemplateAppliedResponse)
async def apply_user_template(
    user_id: str,
    body: ApplyTemplateRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
    registry: Annotated[PermissionStoreRegistry, Depends(get_permission_registry)],
):
    """Apply the limited or full-access template to a user (admin only)."""
    await _get_target_user(db, user_id)
    written = await apply_template(db, user_id, body.template)
    await db.commit()

    await create_audit_log(
        db=db,
        user_id=admin.id,
        action="apply_template",
        resource_type="user_permissions",
        resource_id=user_id,
        details={"template": body.template, "written": written},
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    await registry.refetch(user_id)

    return TemplateAppliedResponse(user_id=user_id, template=body.template, rows_written=written)


@router.get("/users/{user_id}/limited", response_model=LimitedStatusResponse)
async def get_user_limited_status(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _admin: Annotated[User, Depends(get_current_admin_user)],
):
    """Whether the user is on restricted pages' deny list (admin only)."""
    await _get_target_user(db, user_id)
    return LimitedStatusResponse(user_id=user_id, limited=await has_limited_permissions(db, user_id))


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    _admin: Annotated[User, Depends(get_current_admin_user)],
    skip: int = 0,
    limit: int = 50,
    user_id: str | None = None,
    action: str | None = None,
    resource_type: str | None = None,
):
    """List audit logs with optional filtering (admin only)."""
    stmt = select(AuditLog)

    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total_result = await db.execute(count_stmt)
    total = total_result.scalar() or 0

    stmt = stmt.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    logs = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )
