"""
Participation engine: a user's one-time selection of an option on an active bet.
"""

from typing import Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from betpool.database.models import BetOption, BetParticipation, BetStatus
from betpool.services import access_service, bet_service
from betpool.services.access_service import Caller
from betpool.services.exceptions import Conflict, Forbidden, InvalidOption, InvalidState
from betpool.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)

ALREADY_PARTICIPATED = "You have already participated in this bet"


async def has_participated(session: AsyncSession, bet_id: int, user_id: int) -> bool:
    result = await session.execute(
        select(BetParticipation.id)
        .where(BetParticipation.bet_id == bet_id, BetParticipation.user_id == user_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def insert_participation(
    session: AsyncSession, user_id: int, bet_id: int, selected_option_id: int
) -> BetParticipation:
    """
    Insert the participation row and commit.

    The (user_id, bet_id) unique constraint decides concurrent submissions: the
    loser's IntegrityError is turned into Conflict.
    """
    participation = BetParticipation(
        user_id=user_id,
        bet_id=bet_id,
        selected_option_id=selected_option_id,
        is_winner=None,
    )
    session.add(participation)
    try:
        await session.flush()
        await session.refresh(participation)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.info(f"Duplicate participation rejected by constraint: user {user_id}, bet {bet_id}")
        raise Conflict(ALREADY_PARTICIPATED)
    return participation


async def participate(
    session: AsyncSession, caller: Caller, bet_id: int, selected_option_id: int
) -> Dict:
    """
    Record the caller's participation in a bet.

    Checks run in a fixed order and the first failure wins.

    Raises:
        Forbidden: Caller's account is not active, or the bet is private and the caller is not assigned
        NotFound: If the bet does not exist
        InvalidState: If the bet is not active
        InvalidOption: If the option does not belong to the bet
        Conflict: If the caller already participated
    """
    if not caller.is_authenticated or not caller.is_active:
        raise Forbidden("Your account is not active. Please wait for admin approval.")

    bet = await bet_service.get_bet(session, bet_id)
    if not await access_service.can_view(session, caller, bet):
        raise Forbidden("You do not have permission to participate in this bet")
    if bet.status != BetStatus.ACTIVE.value:
        raise InvalidState("Bet is not available for participation")

    result = await session.execute(
        select(BetOption.id).where(
            BetOption.id == selected_option_id, BetOption.bet_id == bet_id
        )
    )
    if result.scalar_one_or_none() is None:
        raise InvalidOption("Selected option does not exist for this bet")

    if await has_participated(session, bet_id, caller.user_id):
        raise Conflict(ALREADY_PARTICIPATED)

    participation = await insert_participation(session, caller.user_id, bet_id, selected_option_id)
    logger.info(f"User {caller.user_id} participated in bet {bet_id} (option {selected_option_id})")

    return {
        "id": participation.id,
        "user_id": participation.user_id,
        "bet_id": participation.bet_id,
        "selected_option_id": participation.selected_option_id,
        "is_winner": participation.is_winner,
        "participated_at": isoformat_or_none(participation.participated_at),
    }
