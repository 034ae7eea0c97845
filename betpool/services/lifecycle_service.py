"""
Bet status state machine.

active → in-progress → resolved, with active → resolved allowed directly.
Resolved is terminal and transitions never go backwards.
"""

from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, case
from betpool.database.models import BetOption, BetParticipation, BetStatus
from betpool.services import bet_service
from betpool.services.exceptions import InvalidInput, InvalidOption, InvalidState
import logging

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BetStatus.ACTIVE.value: {BetStatus.IN_PROGRESS.value, BetStatus.RESOLVED.value},
    BetStatus.IN_PROGRESS.value: {BetStatus.RESOLVED.value},
    BetStatus.RESOLVED.value: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


async def _find_winning_option_id(session: AsyncSession, bet_id: int, winning_option: str) -> int:
    """Match the winning option text against the bet's options: exact first, then trimmed."""
    result = await session.execute(
        select(BetOption.id, BetOption.option_text)
        .where(BetOption.bet_id == bet_id)
        .order_by(BetOption.id)
    )
    options = result.all()

    for option in options:
        if option.option_text == winning_option:
            return option.id
    wanted = winning_option.strip()
    for option in options:
        if option.option_text.strip() == wanted:
            return option.id
    raise InvalidOption("Winning option not found")


async def change_status(
    session: AsyncSession,
    bet_id: int,
    status: str,
    winning_option: Optional[str] = None,
) -> Dict:
    """
    Move a bet to a new status.

    Resolution marks every participation of the bet as winner or loser in the same
    transaction that stores the winning option id.

    Args:
        session: Database session
        bet_id: Bet ID
        status: Target status
        winning_option: Text of the winning option (required when resolving)

    Returns:
        Bet summary after the transition

    Raises:
        InvalidInput: Unknown status, or resolving without a winning option
        NotFound: If the bet does not exist
        InvalidState: If the transition is not allowed from the current status
        InvalidOption: If the winning option is not one of the bet's options
    """
    valid_statuses = [s.value for s in BetStatus]
    if status not in valid_statuses:
        raise InvalidInput("Invalid status")
    resolving = status == BetStatus.RESOLVED.value
    if resolving and (not isinstance(winning_option, str) or not winning_option.strip()):
        raise InvalidInput("Winning option is required when resolving a bet")

    bet = await bet_service.get_bet(session, bet_id, for_update=True)
    previous_status = bet.status
    if not can_transition(previous_status, status):
        raise InvalidState(f"Cannot change bet status from {previous_status} to {status}")

    try:
        if resolving:
            winning_id = await _find_winning_option_id(session, bet_id, winning_option)
            await session.execute(
                update(BetParticipation)
                .where(BetParticipation.bet_id == bet_id)
                .values(
                    is_winner=case(
                        (BetParticipation.selected_option_id == winning_id, True),
                        else_=False,
                    )
                )
                .execution_options(synchronize_session=False)
            )
            bet.winning_option = str(winning_id)
        bet.status = status
        await session.flush()
        await session.refresh(bet)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Bet {bet_id} status changed from {previous_status} to {status}")
    return await bet_service.get_bet_summary(session, bet_id)
