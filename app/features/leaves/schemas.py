"""
Pydantic schemas for leave automation.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class AnnualResetResult(str, Enum):
    RESET_PERFORMED = "reset_performed"
    NO_RESET_NEEDED = "no_reset_needed"
    AUTO_RESET_DISABLED = "auto_reset_disabled"


class AnnualResetResponse(BaseModel):
    success: bool
    result: str
    message: str
    reset_performed: bool
    active_employees: Optional[int] = None
    timestamp: datetime
