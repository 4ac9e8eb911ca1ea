"""
Pydantic schemas for permission rows, snapshots and the permission API.
"""
from datetime import datetime
from typing import Dict, Any, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from app.features.permissions.modules import ActionKey, PermissionType


# ============================================================================
# Rows and snapshots
# ============================================================================

class PermissionRow(BaseModel):
    """One permission row as held by a store. Immutable."""
    permission_type: str
    permission_key: str
    granted: bool = False

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("granted", mode="before")
    @classmethod
    def null_is_denied(cls, v: Any) -> bool:
        return bool(v) if v is not None else False


class BranchAccessRow(BaseModel):
    branch_id: str

    model_config = ConfigDict(from_attributes=True, frozen=True)


class PermissionSnapshot(BaseModel):
    """Permissions and branch access fetched together; replaced as a unit."""
    permissions: tuple[PermissionRow, ...] = ()
    branch_access: tuple[BranchAccessRow, ...] = ()

    model_config = ConfigDict(frozen=True)

    @classmethod
    def empty(cls) -> "PermissionSnapshot":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.permissions and not self.branch_access


# ============================================================================
# Read API
# ============================================================================

class PermissionStateResponse(BaseModel):
    """Read-only view of the caller's store."""
    user_id: str
    status: str
    attempt: int
    loading: bool
    error: Optional[str] = None
    is_admin: bool
    permissions: List[PermissionRow] = []
    branch_access: List[BranchAccessRow] = []


class AccessCheckResponse(BaseModel):
    """Answer to a single page/feature/action query."""
    permission_type: PermissionType
    key: str
    granted: bool


class AccessibleBranchesResponse(BaseModel):
    branch_ids: List[str]
    restricted: bool = Field(..., description="False when every branch is visible")


class PageModuleResponse(BaseModel):
    name: str
    key: str
    path: str
    actions: List[str]


# ============================================================================
# Admin API
# ============================================================================

class PermissionRowUpdate(BaseModel):
    """A row to create or overwrite for a user."""
    permission_type: PermissionType
    permission_key: str = Field(..., min_length=1, max_length=255)
    granted: bool = True

    @field_validator("permission_key")
    @classmethod
    def strip_key(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def key_matches_type(self) -> "PermissionRowUpdate":
        if self.permission_type == PermissionType.PAGE_ACTION:
            # raises ValueError for keys without "module:action" shape
            ActionKey.parse(self.permission_key)
        if self.permission_type == PermissionType.PAGE_ACCESS and not self.permission_key.startswith("/"):
            raise ValueError("page_access keys must be route paths starting with '/'")
        return self


class PermissionRowsUpdate(BaseModel):
    rows: List[PermissionRowUpdate] = Field(..., min_length=1)


class BranchAccessUpdate(BaseModel):
    """Replace a user's branch assignments. Empty list removes all restrictions."""
    branch_ids: List[str] = []


class ApplyTemplateRequest(BaseModel):
    template: Literal["limited", "full"]


class TemplateAppliedResponse(BaseModel):
    user_id: str
    template: str
    rows_written: int


class LimitedStatusResponse(BaseModel):
    user_id: str
    limited: bool


class AuditLogResponse(BaseModel):
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
