"""
Public reference portal routes. Authenticated by the reference token only.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import limiter
from app.features.references.schemas import (
    ReferenceLookupResponse,
    ReferenceRequestPublic,
    ReferenceSubmission,
    ReferenceSubmittedResponse,
)
from app.features.references.service import (
    ReferenceTokenError,
    get_usable_reference_request,
    submit_reference,
)


router = APIRouter()


def _http_error(error: ReferenceTokenError) -> HTTPException:
    detail: dict = {"error": error.message}
    if error.expired:
        detail["expired"] = True
    return HTTPException(status_code=error.status_code, detail=detail)


@router.get("/request", response_model=ReferenceLookupResponse)
@limiter.limit(config.REFERENCE_LOOKUP_RATE_LIMIT)
async def get_reference_request(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    token: Optional[str] = None,
):
    """Look up the reference form behind a token."""
    try:
        reference = await get_usable_reference_request(db, token)
    except ReferenceTokenError as e:
        raise _http_error(e)
    return ReferenceLookupResponse(reference_request=ReferenceRequestPublic.model_validate(reference))


@router.post("/submit", response_model=ReferenceSubmittedResponse)
@limiter.limit(config.REFERENCE_LOOKUP_RATE_LIMIT)
async def post_reference(
    request: Request,
    submission: ReferenceSubmission,
    db: Annotated[AsyncSession, Depends(get_db)],
    token: Optional[str] = None,
):
    """Submit the referee's answers."""
    try:
        reference = await submit_reference(db, token, submission.form_data)
    except ReferenceTokenError as e:
        raise _http_error(e)
    return ReferenceSubmittedResponse(reference_request_id=reference.id, submitted_at=reference.submitted_at)
