"""
Pydantic schemas for employee listings.
"""
from pydantic import BaseModel


class EmployeeResponse(BaseModel):
    id: str
    name: str
    email: str | None = None
    branch_id: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}
