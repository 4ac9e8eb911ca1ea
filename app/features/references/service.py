"""
Reference token checks.

A token is usable while it exists, has not been submitted, is not flagged
expired and its ``expires_at`` lies in the future. A token found past its
``expires_at`` is flagged expired on the spot.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.references.models import ReferenceRequest
from app.utils import get_logger


log = get_logger(__name__)


class ReferenceTokenError(Exception):
    """A reference token cannot be used. ``status_code`` is the HTTP status to answer with."""

    def __init__(self, status_code: int, message: str, expired: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.expired = expired


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


async def get_usable_reference_request(
    db: AsyncSession,
    token: Optional[str],
    now: Optional[datetime] = None,
) -> ReferenceRequest:
    """
    Load the reference request behind ``token``.

    Raises:
        ReferenceTokenError: 400 without a token, 404 for unknown tokens,
            410 for used or expired ones
    """
    if not token:
        raise ReferenceTokenError(400, "Token is required")

    result = await db.execute(select(ReferenceRequest).where(ReferenceRequest.token == token))
    reference = result.scalar_one_or_none()
    if reference is None:
        raise ReferenceTokenError(404, "Invalid or expired token")

    if reference.is_expired or reference.submitted_at:
        raise ReferenceTokenError(410, "This reference link has already been used or has expired", expired=True)

    now = now or datetime.now(timezone.utc)
    if reference.expires_at and _as_utc(reference.expires_at) < now:
        reference.is_expired = True
        await db.commit()
        log.info(f"Reference request {reference.id} expired at {reference.expires_at}")
        raise ReferenceTokenError(410, "This reference link has expired", expired=True)

    return reference


async def submit_reference(
    db: AsyncSession,
    token: Optional[str],
    form_data: Dict[str, Any],
    now: Optional[datetime] = None,
) -> ReferenceRequest:
    """
    Store the referee's answers and close the token.

    Raises:
        ReferenceTokenError: same cases as get_usable_reference_request
    """
    now = now or datetime.now(timezone.utc)
    reference = await get_usable_reference_request(db, token, now=now)
    reference.form_data = form_data
    reference.submitted_at = now
    reference.completed_at = now
    reference.status = "completed"
    await db.commit()
    await db.refresh(reference)
    log.info(f"Reference request {reference.id} submitted for application {reference.application_id}")
    return reference
