"""
Authentication dependencies for FastAPI routes.

The stored user row, not the token claims, decides role and status, so a
deactivation or promotion takes effect on the next request.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from betpool.services import auth_service, user_service
from betpool.services.access_service import Caller
from betpool.database.db import get_db_session
from betpool.database.models import UserRole, UserStatus

security = HTTPBearer(auto_error=False)

INACTIVE_ACCOUNT_DETAIL = "Your account is not active. Please wait for admin approval."


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        session: Database session
        credentials: HTTP Bearer token credentials

    Returns:
        User dictionary

    Raises:
        HTTPException: 401 if the header is missing, the token is invalid or the user is gone
    """
    if credentials is None:
        raise _unauthenticated("Authorization header required")

    payload = auth_service.verify_token(credentials.credentials)
    if payload is None:
        raise _unauthenticated("Invalid token")

    user_id = payload.get("user_id")
    if user_id is None:
        raise _unauthenticated("Invalid token payload")

    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise _unauthenticated("User not found")

    return user


async def get_current_user_optional(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict]:
    """
    Optional dependency to get the current authenticated user.
    Returns None if no token is provided or token is invalid.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(session, credentials)
    except HTTPException:
        return None


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated user, whatever their account status."""
    return user


async def require_active_user(user: dict = Depends(get_current_user)) -> dict:
    """Require an authenticated user whose account is active."""
    if user.get("status") != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=INACTIVE_ACCOUNT_DETAIL)
    return user


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Require an active admin."""
    if user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    if user.get("status") != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=INACTIVE_ACCOUNT_DETAIL)
    return user


async def get_caller(user: Optional[dict] = Depends(get_current_user_optional)) -> Caller:
    """Resolve the requester (anonymous when no valid token was presented)."""
    return Caller.from_user(user)


async def get_authenticated_caller(user: dict = Depends(get_current_user)) -> Caller:
    """Resolve the requester, failing with 401 when no valid token was presented."""
    return Caller.from_user(user)
