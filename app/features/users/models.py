"""
User and role-record models.

A user row mirrors an Appwrite account. Portal staff additionally carry a row
in ``user_roles`` (admin, user, ...); employee accounts are recognised by their
Appwrite ``role`` preference instead and have no role record.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core import config
from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    User model representing authenticated portal accounts.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Account role claim from the identity provider ("employee" for the employee portal)
    metadata_role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    role_assignment: Mapped["UserRole | None"] = relationship(
        "UserRole",
        back_populates="user",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def role(self) -> str | None:
        """Portal role from ``user_roles``; None when the account has no role record."""
        return self.role_assignment.role if self.role_assignment else None

    @property
    def is_admin(self) -> bool:
        return self.role == config.ADMIN_ROLE

    @property
    def is_restricted_account(self) -> bool:
        return self.metadata_role in config.RESTRICTED_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"


class UserRole(Base, TimestampMixin):
    """Portal role of a staff account. Deleting it revokes portal sign-in."""
    __tablename__ = "user_roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="user")

    user: Mapped["User"] = relationship("User", back_populates="role_assignment")

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role={self.role!r})>"
