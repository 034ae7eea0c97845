"""Bet route handlers: creation, lifecycle, participation, assignees and listings."""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from betpool.api.routes import INTERNAL_ERROR_DETAIL
from betpool.api.auth_dependencies import (
    get_authenticated_caller,
    get_caller,
    require_active_user,
    require_admin,
)
from betpool.database.db import get_db_session
from betpool.services import (
    assignment_service,
    bet_events,
    bet_service,
    lifecycle_service,
    participation_service,
)
from betpool.services.access_service import Caller
from betpool.services.exceptions import BetpoolError, InvalidInput
from betpool.models.schemas import (
    AddAssigneesRequest,
    ChangeStatusRequest,
    CreateBetRequest,
    EditBetRequest,
    ParticipateRequest,
    RemoveAssigneeRequest,
    ReplaceOptionsRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"{action} error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)


def _publish_bet_created(bet: Dict, admin_id: int) -> None:
    assignees = bet.get("assignees") or []
    bet_events.publish(
        bet_events.BetEvent(
            kind=bet_events.BET_CREATED,
            bet_id=bet["id"],
            title=bet["title"],
            payload={
                "description": bet["description"],
                "amount": bet["amount"],
                "visibility": bet["visibility"],
                "options": [option["option_text"] for option in bet["options"]],
                "assignee_ids": [assignee["user_id"] for assignee in assignees],
            },
            actor_user_id=admin_id,
        )
    )


async def _create_bet(payload: CreateBetRequest, admin: dict, session: AsyncSession) -> Dict:
    try:
        bet = await bet_service.create_bet(
            session,
            admin_id=admin["id"],
            title=payload.title,
            description=payload.description,
            amount=payload.amount,
            options=payload.options,
            visibility=payload.visibility,
            assignees=payload.assignees,
        )
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Create bet", e)

    _publish_bet_created(bet, admin["id"])
    return {"bet": bet}


@router.post("/api/bets", status_code=201)
async def create_bet(
    payload: CreateBetRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a bet with its options (admin only)."""
    return await _create_bet(payload, admin, session)


@router.post("/api/bets/create", status_code=201)
async def create_bet_legacy(
    payload: CreateBetRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Same as POST /api/bets, kept for the web client."""
    return await _create_bet(payload, admin, session)


@router.get("/api/bets/all")
async def list_all_bets(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Every bet with options, participation counts and assignees (admin dashboard)."""
    try:
        return {"bets": await bet_service.list_all_bets(session)}
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("List bets", e)


@router.get("/api/bets/user")
async def list_user_bets(
    tab: str = "all",
    page: int = Query(1),
    limit: int = Query(10),
    caller: Caller = Depends(get_authenticated_caller),
    session: AsyncSession = Depends(get_db_session),
):
    """Paginated bets visible to the caller, filtered by tab."""
    try:
        return await bet_service.list_user_bets(
            session, caller, tab=tab.strip().lower(), page=page, limit=limit
        )
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Get user bets", e)


@router.get("/api/bets/{bet_id}")
async def get_bet(
    bet_id: int,
    caller: Caller = Depends(get_caller),
    session: AsyncSession = Depends(get_db_session),
):
    """Bet detail. Public bets are readable anonymously; private bets need an assignment."""
    try:
        return {"bet": await bet_service.get_bet_detail(session, bet_id, caller)}
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Get single bet", e)


@router.post("/api/bets/{bet_id}/edit")
async def edit_bet(
    bet_id: int,
    payload: EditBetRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Edit a bet's fields and visibility (admin only, not once resolved)."""
    try:
        bet = await bet_service.edit_bet(
            session,
            admin_id=admin["id"],
            bet_id=bet_id,
            title=payload.title,
            description=payload.description,
            amount=payload.amount,
            visibility=payload.visibility,
            assignees=payload.assignees,
        )
        return {"bet": bet}
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Edit bet", e)


@router.post("/api/bets/{bet_id}/options")
async def replace_bet_options(
    bet_id: int,
    payload: ReplaceOptionsRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Replace the whole option set of a bet nobody has joined yet."""
    try:
        return {"bet": await bet_service.replace_options(session, bet_id, payload.options)}
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Replace options", e)


@router.post("/api/bets/{bet_id}/status")
async def change_bet_status(
    bet_id: int,
    payload: ChangeStatusRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Move a bet forward in its lifecycle; resolving requires winningOption."""
    try:
        bet = await lifecycle_service.change_status(
            session, bet_id, payload.status, winning_option=payload.winning_option
        )
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Update bet status", e)

    bet_events.publish(
        bet_events.BetEvent(
            kind=bet_events.BET_STATUS_CHANGED,
            bet_id=bet["id"],
            title=bet["title"],
            payload={
                "status": bet["status"],
                "winning_option_text": bet["winning_option_text"],
                "participation_count": bet["participation_count"],
            },
            actor_user_id=admin["id"],
        )
    )
    return {"message": "Bet status updated successfully", "bet": bet}


@router.post("/api/bets/{bet_id}/participate")
async def participate(
    bet_id: int,
    payload: ParticipateRequest,
    user: dict = Depends(require_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Join a bet by selecting one of its options (once per user)."""
    if payload.selected_option_id is None:
        raise InvalidInput("Selected option ID is required")
    try:
        await participation_service.participate(
            session, Caller.from_user(user), bet_id, payload.selected_option_id
        )
        bet = await bet_service.get_bet(session, bet_id)
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Participate", e)

    bet_events.publish(
        bet_events.BetEvent(
            kind=bet_events.PARTICIPANT_JOINED,
            bet_id=bet_id,
            title=bet.title,
            payload={"user_name": user.get("full_name") or user.get("email")},
            actor_user_id=user["id"],
        )
    )
    return {"message": "Successfully participated in bet"}


@router.get("/api/bets/{bet_id}/assignees")
async def get_assignees(
    bet_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Assignee roster of a bet."""
    try:
        return {"assignees": await assignment_service.list_assignees(session, bet_id)}
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Get assignees", e)


@router.post("/api/bets/{bet_id}/assignees")
async def add_assignees(
    bet_id: int,
    payload: AddAssigneesRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Grant active users access to a private bet."""
    try:
        assignees = await assignment_service.add_assignees(
            session, admin["id"], bet_id, payload.assignees
        )
        return {"message": "Assignees added successfully", "assignees": assignees}
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Add assignees", e)


@router.post("/api/bets/{bet_id}/remove-assignee")
async def remove_assignee(
    bet_id: int,
    payload: RemoveAssigneeRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Revoke a user's access to a private bet (the last assignee cannot be removed)."""
    if payload.user_id is None:
        raise InvalidInput("User ID is required")
    try:
        assignees = await assignment_service.remove_assignee(session, bet_id, payload.user_id)
        return {"message": "Assignee removed successfully", "assignees": assignees}
    except BetpoolError:
        raise
    except Exception as e:
        raise _internal_error("Remove assignee", e)
