"""
Reads and writes of the permission tables.

``SQLPermissionFetcher`` feeds the permission stores; it opens its own
session per read because a store outlives the request that opened it. The
module-level helpers take the request's session, like the other feature
dependencies do.
"""
from typing import Iterable, List, Sequence

from sqlalchemy import select, delete, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.permissions.models import Branch, UserBranchAccess, UserPermission
from app.features.permissions.modules import PermissionType
from app.features.permissions.schemas import BranchAccessRow, PermissionRow, PermissionRowUpdate
from app.features.permissions.store import PermissionFetchError
from app.utils import get_logger


log = get_logger(__name__)


class SQLPermissionFetcher:
    """Fetches a user's rows from ``user_permissions`` and ``user_branch_access``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def fetch_permissions(self, user_id: str) -> List[PermissionRow]:
        try:
            async with self._session_factory() as session:
                rows = await list_permission_rows(session, user_id)
        except (SQLAlchemyError, OSError) as e:
            raise PermissionFetchError(f"Failed to load permissions: {e}") from e
        return [PermissionRow.model_validate(row) for row in rows]

    async def fetch_branch_access(self, user_id: str) -> List[BranchAccessRow]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(UserBranchAccess).where(UserBranchAccess.user_id == user_id)
                )
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise PermissionFetchError(f"Failed to load branch access: {e}") from e
        return [BranchAccessRow.model_validate(row) for row in rows]


async def list_permission_rows(db: AsyncSession, user_id: str) -> Sequence[UserPermission]:
    result = await db.execute(
        select(UserPermission)
        .where(UserPermission.user_id == user_id)
        .order_by(UserPermission.permission_type, UserPermission.permission_key)
    )
    return result.scalars().all()


async def upsert_permission_rows(
    db: AsyncSession,
    user_id: str,
    rows: Iterable[PermissionRowUpdate],
) -> int:
    """
    Create or overwrite rows on ``(user_id, permission_type, permission_key)``.

    Returns the number of rows written. The caller commits.
    """
    existing = {
        (row.permission_type, row.permission_key): row
        for row in await list_permission_rows(db, user_id)
    }
    written = 0
    for update in rows:
        key = (PermissionType(update.permission_type).value, update.permission_key)
        row = existing.get(key)
        if row is None:
            row = UserPermission(
                user_id=user_id,
                permission_type=key[0],
                permission_key=key[1],
                granted=update.granted,
            )
            db.add(row)
            existing[key] = row
        else:
            row.granted = update.granted
        written += 1
    await db.flush()
    return written


async def replace_branch_access(db: AsyncSession, user_id: str, branch_ids: Iterable[str]) -> List[str]:
    """Swap the user's branch assignments for ``branch_ids``. The caller commits."""
    wanted = list(dict.fromkeys(branch_ids))
    await db.execute(delete(UserBranchAccess).where(UserBranchAccess.user_id == user_id))
    for branch_id in wanted:
        db.add(UserBranchAccess(user_id=user_id, branch_id=branch_id))
    await db.flush()
    return wanted


async def list_all_branch_ids(db: AsyncSession) -> List[str]:
    result = await db.execute(select(Branch.id).order_by(Branch.name))
    return list(result.scalars().all())


async def find_unknown_branches(db: AsyncSession, branch_ids: Iterable[str]) -> List[str]:
    wanted = set(branch_ids)
    if not wanted:
        return []
    result = await db.execute(select(Branch.id).where(Branch.id.in_(wanted)))
    return sorted(wanted - set(result.scalars().all()))


async def any_page_denied(db: AsyncSession, user_id: str, paths: Iterable[str]) -> bool:
    """True when the user has an explicit denied ``page_access`` row for any of ``paths``."""
    result = await db.execute(
        select(UserPermission.id).where(
            and_(
                UserPermission.user_id == user_id,
                UserPermission.permission_type == PermissionType.PAGE_ACCESS.value,
                UserPermission.permission_key.in_(list(paths)),
                UserPermission.granted.is_not(True),
            )
        ).limit(1)
    )
    return result.first() is not None
