"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.schemas import UserResponse, UserPublic
from app.features.users.dependencies import get_current_user
from app.features.permissions.dependencies import get_permission_registry
from app.features.permissions.store import PermissionStoreRegistry


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    user: Annotated[User, Depends(get_current_user)],
    registry: Annotated[PermissionStoreRegistry, Depends(get_permission_registry)],
):
    """Drop the caller's permission store; the Appwrite session is ended client-side."""
    registry.close(user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _user: Annotated[User, Depends(get_current_user)],
):
    """Get public user profile by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user


@router.get("/", response_model=list[UserPublic])
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    _user: Annotated[User, Depends(get_current_user)],
    skip: int = 0,
    limit: int = 50
):
    """List active users (public info only)."""
    result = await db.execute(
        select(User)
        .where(User.is_active == True)  # noqa: E712
        .order_by(User.name)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()
