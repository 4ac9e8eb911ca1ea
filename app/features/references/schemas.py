"""
Pydantic schemas for the public reference portal.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ReferenceRequestPublic(BaseModel):
    """What the referee's form needs to render."""
    id: str
    application_id: str
    reference_name: str
    reference_email: str
    reference_type: str
    reference_company: Optional[str] = None
    applicant_name: str
    position_applied_for: Optional[str] = None
    status: str
    expires_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReferenceLookupResponse(BaseModel):
    success: bool = True
    reference_request: ReferenceRequestPublic


class ReferenceSubmission(BaseModel):
    form_data: Dict[str, Any] = Field(..., min_length=1)


class ReferenceSubmittedResponse(BaseModel):
    success: bool = True
    reference_request_id: str
    submitted_at: datetime
