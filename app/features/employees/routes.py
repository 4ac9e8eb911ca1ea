"""
Employee routes. Listings only show employees of branches the caller may see.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.employees.models import Employee
from app.features.employees.schemas import EmployeeResponse
from app.features.permissions.access import PermissionAccess
from app.features.permissions.dependencies import require_page


router = APIRouter()


@router.get("/", response_model=list[EmployeeResponse])
async def list_employees(
    db: Annotated[AsyncSession, Depends(get_db)],
    access: Annotated[PermissionAccess, Depends(require_page("/employees"))],
    include_inactive: bool = False,
    skip: int = 0,
    limit: int = 100,
):
    """List employees in the caller's accessible branches."""
    stmt = select(Employee)
    if not include_inactive:
        stmt = stmt.where(Employee.is_active == True)  # noqa: E712
    if access.is_branch_restricted():
        stmt = stmt.where(Employee.branch_id.in_(access.accessible_branches()))

    stmt = stmt.order_by(Employee.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()
