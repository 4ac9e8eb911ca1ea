"""
Annual leave-balance reset trigger.

The reset itself is the database routine ``run_leave_annual_reset_if_needed()``,
which checks the fiscal-year settings and answers with one of the
``AnnualResetResult`` values. This module calls it and reports what happened.
"""
from datetime import datetime, timezone
from typing import Awaitable, Callable

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.employees.models import Employee
from app.features.leaves.schemas import AnnualResetResponse, AnnualResetResult
from app.utils import get_logger


log = get_logger(__name__)


ResetRoutine = Callable[[AsyncSession], Awaitable[str]]

RESULT_MESSAGES = {
    AnnualResetResult.RESET_PERFORMED: "Annual leave balance reset was performed successfully",
    AnnualResetResult.NO_RESET_NEEDED: "No reset needed - not yet time for fiscal year reset",
    AnnualResetResult.AUTO_RESET_DISABLED: "Auto reset is disabled in settings",
}


class LeaveAutomationError(Exception):
    """The reset routine could not be run."""


async def call_reset_routine(db: AsyncSession) -> str:
    result = await db.execute(select(func.run_leave_annual_reset_if_needed()))
    return str(result.scalar_one())


async def count_active_employees(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Employee).where(Employee.is_active == True)  # noqa: E712
    )
    return result.scalar() or 0


async def run_annual_reset(db: AsyncSession, routine: ResetRoutine = call_reset_routine) -> AnnualResetResponse:
    """
    Run the annual reset check.

    Raises:
        LeaveAutomationError: if the routine fails
    """
    log.info("Checking if annual leave reset is needed...")
    try:
        raw = await routine(db)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.error(f"Error running annual reset check: {e}")
        raise LeaveAutomationError(str(e)) from e

    log.info(f"Annual reset check result: {raw}")
    try:
        result = AnnualResetResult(raw)
    except ValueError:
        log.warning(f"Unexpected annual reset result: {raw!r}")
        message = f"Unknown result: {raw}"
        reset_performed = False
    else:
        message = RESULT_MESSAGES[result]
        reset_performed = result == AnnualResetResult.RESET_PERFORMED

    active_employees = None
    if reset_performed:
        active_employees = await count_active_employees(db)
        log.info(f"Reset affected {active_employees} active employees")

    return AnnualResetResponse(
        success=True,
        result=raw,
        message=message,
        reset_performed=reset_performed,
        active_employees=active_employees,
        timestamp=datetime.now(timezone.utc),
    )
