"""
Permission rows, branch access and audit log tables.

Permissions are stored per user as ``(permission_type, permission_key,
granted)`` rows, unique on ``(user_id, permission_type, permission_key)``:

- ``page_access`` keyed by route path, e.g. ``/employees``
- ``page_action`` keyed by ``module:action``, e.g. ``employees:delete``
- ``feature_access`` keyed by feature name

Branch access rows scope which branches' data a user may see.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class UserPermission(Base, TimestampMixin):
    """One grant or denial for one user."""
    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "permission_type", "permission_key", name="uq_user_permission"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    permission_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    permission_key: Mapped[str] = mapped_column(String(255), nullable=False)
    # NULL reads as not granted
    granted: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)

    def __repr__(self) -> str:
        return (
            f"<UserPermission(user_id={self.user_id}, type={self.permission_type}, "
            f"key={self.permission_key!r}, granted={self.granted})>"
        )


class Branch(Base, TimestampMixin):
    """Physical or organizational branch."""
    __tablename__ = "branches"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name={self.name!r})>"


class UserBranchAccess(Base, TimestampMixin):
    """Association of a user to a branch whose data they may see."""
    __tablename__ = "user_branch_access"
    __table_args__ = (
        UniqueConstraint("user_id", "branch_id", name="uq_user_branch_access"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    branch_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<UserBranchAccess(user_id={self.user_id}, branch_id={self.branch_id})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for permission changes.

    Tracks who changed whose rows, when, and from where.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
