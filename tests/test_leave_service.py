import pytest
from sqlalchemy.exc import OperationalError

from app.features.employees.models import Employee
from app.features.leaves.service import LeaveAutomationError, run_annual_reset


def routine_returning(value):
    async def routine(db):
        return value
    return routine


async def seed_employees(db):
    db.add_all([
        Employee(name="Ada", is_active=True),
        Employee(name="Ben", is_active=True),
        Employee(name="Cy", is_active=False),
    ])
    await db.commit()


async def test_reset_performed_counts_active_employees(db):
    await seed_employees(db)

    response = await run_annual_reset(db, routine=routine_returning("reset_performed"))

    assert response.success
    assert response.reset_performed
    assert response.active_employees == 2
    assert response.message == "Annual leave balance reset was performed successfully"


@pytest.mark.parametrize("raw,message", [
    ("no_reset_needed", "No reset needed - not yet time for fiscal year reset"),
    ("auto_reset_disabled", "Auto reset is disabled in settings"),
    ("half_reset", "Unknown result: half_reset"),
])
async def test_other_results(db, raw, message):
    response = await run_annual_reset(db, routine=routine_returning(raw))

    assert response.success
    assert response.result == raw
    assert response.message == message
    assert not response.reset_performed
    assert response.active_employees is None


async def test_routine_failure_raises(db):
    async def broken(db):
        raise OperationalError("SELECT run_leave_annual_reset_if_needed()", {}, Exception("no such function"))

    with pytest.raises(LeaveAutomationError):
        await run_annual_reset(db, routine=broken)
