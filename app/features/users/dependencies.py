"""
FastAPI dependencies for authentication.

``get_optional_user`` never fails: a missing, malformed or expired token, or a
staff account whose role record was removed, all resolve to ``None`` so the
route guard can render the sign-in redirect. ``get_current_user`` is the
strict variant for plain API endpoints.
"""
from typing import Annotated, Callable, Optional
from datetime import datetime
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.auth import verify_jwt_token, get_appwrite_user, account_role
from app.utils import get_logger


log = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def resolve_user(
    token: str,
    db: AsyncSession,
    on_revoked: Optional[Callable[[str], None]] = None,
) -> Optional[User]:
    """
    Turn a bearer token into the local user row.

    1. Decodes the Appwrite JWT
    2. Looks up the local user, creating it from Appwrite on first sight
    3. Updates last_login_at

    Returns None when a non-employee account has no role record (the account
    was removed from the portal and must sign in again). ``on_revoked`` is
    called with the user id in that case and for deactivated accounts.

    Raises:
        HTTPException: 401 for bad tokens, 403 for deactivated accounts
    """
    payload = verify_jwt_token(token)
    appwrite_user_id = payload.get("userId")

    if not appwrite_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    result = await db.execute(
        select(User).where(User.appwrite_id == appwrite_user_id)
    )
    user = result.scalar_one_or_none()

    if user is None:
        appwrite_user = await get_appwrite_user(appwrite_user_id)
        user = User(
            appwrite_id=appwrite_user_id,
            email=appwrite_user.get("email", ""),
            name=appwrite_user.get("name", "Unknown"),
            metadata_role=account_role(appwrite_user),
            last_login_at=datetime.utcnow(),
        )
        db.add(user)
    else:
        user.last_login_at = datetime.utcnow()
    await db.commit()
    await db.refresh(user)

    if not user.is_active:
        if on_revoked is not None:
            on_revoked(user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    if not user.is_restricted_account and user.role is None:
        log.info(f"User {user.id} has no role record, treating as signed out")
        if on_revoked is not None:
            on_revoked(user.id)
        return None

    return user


async def get_optional_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Optional[User]:
    """Current user, or None when the request is not authenticated."""
    if credentials is None:
        return None
    # stores of revoked accounts are released on their next request
    registry = getattr(request.app.state, "permission_registry", None)
    on_revoked = registry.close if registry is not None else None
    try:
        return await resolve_user(credentials.credentials, db, on_revoked=on_revoked)
    except HTTPException as e:
        if e.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        log.debug(f"Rejected bearer token: {e.detail}")
        return None


async def get_current_user(
    user: Annotated[Optional[User], Depends(get_optional_user)]
) -> User:
    """
    Require an authenticated user.

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_admin_user(
    user: Annotated[User, Depends(get_current_user)]
) -> User:
    """
    Require the portal administrator role.

    Usage:
        @router.put("/users/{user_id}/rows")
        async def replace_rows(user_id: str, admin: User = Depends(get_current_admin_user)):
            ...
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return user

