"""
Leave automation routes.
"""
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.leaves.schemas import AnnualResetResponse
from app.features.leaves.service import LeaveAutomationError, run_annual_reset
from app.features.permissions.access import PermissionAccess
from app.features.permissions.dependencies import require_page_action
from app.features.permissions.modules import ModuleKey, PageAction


router = APIRouter()


@router.post("/automation/annual-reset", response_model=AnnualResetResponse)
async def trigger_annual_reset(
    db: Annotated[AsyncSession, Depends(get_db)],
    _access: Annotated[
        PermissionAccess,
        Depends(require_page_action(ModuleKey.LEAVES, PageAction.EDIT, required_page="/leaves"))
    ],
):
    """Reset leave balances if the fiscal year rolled over."""
    try:
        return await run_annual_reset(db)
    except LeaveAutomationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "success": False,
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
