"""Authentication route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from betpool.api.routes import limiter, INVALID_CREDENTIALS_RESPONSE, INTERNAL_ERROR_DETAIL
from betpool.database.db import get_db_session
from betpool.database.models import UserStatus
from betpool.services import auth_service, bet_events, user_service
from betpool.services.exceptions import BetpoolError
from betpool.models.schemas import AuthResponse, LoginRequest, SignupRequest, UserActionResponse

logger = logging.getLogger(__name__)
router = APIRouter()

MIN_PASSWORD_LENGTH = 6
MIN_FULL_NAME_LENGTH = 3


@router.post("/api/auth/signup", response_model=UserActionResponse, status_code=201)
@limiter.limit("10/minute")
async def signup(
    request: Request, payload: SignupRequest, session: AsyncSession = Depends(get_db_session)
):
    """
    Create an account in pending status. No token is issued until an admin approves it.
    """
    try:
        if not payload.email or not payload.password or not payload.confirm_password or not payload.full_name:
            raise HTTPException(
                status_code=400,
                detail="Email, password, confirm password, and full name are required",
            )
        try:
            email = auth_service.normalize_email(payload.email)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        full_name = payload.full_name.strip()
        if len(full_name) < MIN_FULL_NAME_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Full name must be at least {MIN_FULL_NAME_LENGTH} characters long",
            )
        if payload.password != payload.confirm_password:
            raise HTTPException(status_code=400, detail="Passwords do not match")
        if len(payload.password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            )

        user = await user_service.create_user(
            session,
            email=email,
            password_hash=auth_service.hash_password(payload.password),
            full_name=full_name,
        )
    except (HTTPException, BetpoolError):
        raise
    except Exception as e:
        logger.error(f"Signup error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)

    bet_events.publish(
        bet_events.BetEvent(
            kind=bet_events.USER_SIGNED_UP,
            title=user["full_name"] or user["email"],
            actor_user_id=user["id"],
        )
    )
    return {
        "message": "Account created successfully. Your account is pending admin approval.",
        "user": user,
    }


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)
):
    """Exchange email and password for a bearer token (active accounts only)."""
    try:
        if not payload.email or not payload.password:
            raise HTTPException(status_code=400, detail="Email and password are required")

        user = await user_service.get_user_by_email(session, payload.email, include_password=True)
        if not user or not auth_service.verify_password(payload.password, user["password_hash"]):
            raise INVALID_CREDENTIALS_RESPONSE

        if user["status"] == UserStatus.PENDING.value:
            return JSONResponse(
                status_code=403,
                content={"error": "Account pending approval", "status": UserStatus.PENDING.value},
            )
        if user["status"] == UserStatus.DEACTIVATED.value:
            return JSONResponse(
                status_code=403,
                content={"error": "Account suspended", "status": UserStatus.DEACTIVATED.value},
            )

        user.pop("password_hash", None)
        token = auth_service.create_access_token(auth_service.build_token_claims(user))
        logger.info(f"User {user['id']} logged in")
        return {"token": token, "user": user}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)
