"""
Reference requests sent to an applicant's referees.

Each request carries a single-use token; the referee opens the public
reference form with it until it expires or the form is submitted.
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import String, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class ReferenceRequest(Base, TimestampMixin):
    __tablename__ = "reference_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    application_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)

    reference_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reference_email: Mapped[str] = mapped_column(String(255), nullable=False)
    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    applicant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    position_applied_for: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_expired: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    form_data: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<ReferenceRequest(id={self.id}, application_id={self.application_id}, status={self.status})>"
