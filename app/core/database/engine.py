"""
Database engine configuration and session management.

The portal's tables live in the managed backend's Postgres in production
(postgresql+asyncpg://...) and in a local SQLite file during development
(sqlite+aiosqlite:///./data.db). Only DATABASE_URL changes between the two.
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core import config

engine = create_async_engine(
    config.SQLALCHEMY_DATABASE_URL,
    # NullPool for SQLite to avoid connection pool issues
    poolclass=NullPool if config.SQLALCHEMY_DATABASE_URL.startswith("sqlite") else None,
    echo=False,  # Set to True for SQL query logging during development
    future=True,
)

# Sessions for request handlers and for the permission stores' background fetches
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Usage in FastAPI routes:
        @router.get("/branches")
        async def list_branches(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Branch))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def import_models() -> None:
    """Import every model module so their tables register on Base.metadata."""
    from app.features.users.models import User, UserRole  # noqa: F401
    from app.features.permissions.models import (  # noqa: F401
        UserPermission, UserBranchAccess, Branch, AuditLog
    )
    from app.features.employees.models import Employee  # noqa: F401
    from app.features.references.models import ReferenceRequest  # noqa: F401


async def init_db():
    """
    Create missing tables. Called from the application startup hook.
    """
    from app.core.database.base import Base

    import_models()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db():
    """Release pooled connections on shutdown."""
    await engine.dispose()
