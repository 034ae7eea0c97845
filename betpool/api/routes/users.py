"""User administration route handlers (admin only)."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from betpool.api.routes import INTERNAL_ERROR_DETAIL
from betpool.api.auth_dependencies import get_current_user, require_admin
from betpool.database.db import get_db_session
from betpool.services import bet_events, user_service
from betpool.services.exceptions import BetpoolError
from betpool.models.schemas import UserActionResponse, UserListResponse, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Current user's account, whatever its status (used by the pending/suspended pages)."""
    return user


@router.get("/api/users/all", response_model=UserListResponse)
async def list_all_users(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """List every account (admin dashboard)."""
    try:
        return {"users": await user_service.list_users(session)}
    except Exception as e:
        logger.error(f"Users fetch error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)


@router.post("/api/users/{user_id}/approve", response_model=UserActionResponse)
async def approve_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve a pending account."""
    try:
        user = await user_service.approve_user(session, user_id)
    except BetpoolError:
        raise
    except Exception as e:
        logger.error(f"Approve user error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)

    bet_events.publish(
        bet_events.BetEvent(
            kind=bet_events.USER_APPROVED,
            payload={"user_id": user_id},
            actor_user_id=admin["id"],
        )
    )
    return {"message": "User approved successfully", "user": user}


@router.post("/api/users/{user_id}/reactivate", response_model=UserActionResponse)
async def reactivate_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Reactivate a deactivated account."""
    try:
        user = await user_service.reactivate_user(session, user_id)
    except BetpoolError:
        raise
    except Exception as e:
        logger.error(f"Reactivate user error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)

    bet_events.publish(
        bet_events.BetEvent(
            kind=bet_events.USER_REACTIVATED,
            payload={"user_id": user_id},
            actor_user_id=admin["id"],
        )
    )
    return {"message": "User reactivated successfully", "user": user}


@router.post("/api/users/{user_id}/deactivate", response_model=UserActionResponse)
async def deactivate_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Suspend an account. Admins cannot deactivate themselves."""
    try:
        user = await user_service.deactivate_user(session, user_id, acting_admin_id=admin["id"])
        return {"message": "User deactivated successfully", "user": user}
    except BetpoolError:
        raise
    except Exception as e:
        logger.error(f"Deactivate user error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)
