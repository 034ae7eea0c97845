"""
Assignment manager for private bets.

Assignees are the only non-admin users who can see and join a private bet. A
private bet always keeps at least one assignee.
"""

from typing import Any, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from betpool.database.models import BetAssignee, BetVisibility, UserStatus
from betpool.services import bet_service, user_service
from betpool.services.exceptions import Conflict, InvalidState, NotFound
import logging

logger = logging.getLogger(__name__)


async def list_assignees(session: AsyncSession, bet_id: int, active_only: bool = False) -> List[Dict]:
    """
    Assignee roster of a bet.

    Raises:
        NotFound: If the bet does not exist
    """
    await bet_service.get_bet(session, bet_id)
    return await bet_service.get_assignee_roster(session, bet_id, active_only=active_only)


async def add_assignees(
    session: AsyncSession, admin_id: int, bet_id: int, user_ids: Any
) -> List[Dict]:
    """
    Grant users access to a private bet.

    Users who are already assigned are skipped. The batch is all-or-nothing: one
    unknown or inactive user rejects every insert.

    Args:
        session: Database session
        admin_id: Admin performing the assignment
        bet_id: Bet ID
        user_ids: Non-empty list of user IDs

    Returns:
        Active assignees of the bet after the insert

    Raises:
        InvalidInput: If user_ids is not a non-empty list of integers
        NotFound: If the bet or any user does not exist
        InvalidState: If the bet is public or any user is not active
        Conflict: If every user is already assigned
    """
    requested = bet_service.clean_user_ids(user_ids)

    bet = await bet_service.get_bet(session, bet_id, for_update=True)
    if bet.visibility != BetVisibility.PRIVATE.value:
        raise InvalidState("Cannot add assignees to a public bet")

    result = await session.execute(
        select(BetAssignee.user_id).where(BetAssignee.bet_id == bet_id)
    )
    already_assigned = set(result.scalars().all())
    new_ids = [user_id for user_id in requested if user_id not in already_assigned]
    if not new_ids:
        raise Conflict("All specified users are already assigned to this bet")

    users = await user_service.get_users_by_ids(session, new_ids)
    if len(users) != len(new_ids):
        raise NotFound("One or more users do not exist")
    if any(user.status != UserStatus.ACTIVE.value for user in users):
        raise InvalidState("Cannot assign inactive users (pending or deactivated) to bets")

    session.add_all(
        [BetAssignee(bet_id=bet_id, user_id=user_id, assigned_by=admin_id) for user_id in new_ids]
    )
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("One or more users are already assigned to this bet")

    logger.info(f"Admin {admin_id} assigned users {new_ids} to bet {bet_id}")
    return await bet_service.get_assignee_roster(session, bet_id, active_only=True)


async def remove_assignee(session: AsyncSession, bet_id: int, user_id: int) -> List[Dict]:
    """
    Revoke a user's access to a private bet.

    The assignee count is taken while holding the bet row lock, so two concurrent
    removals cannot both pass the last-assignee check on PostgreSQL.

    Returns:
        Remaining assignees of the bet

    Raises:
        NotFound: If the bet does not exist or the user is not assigned
        InvalidState: If the user is the bet's only assignee
    """
    await bet_service.get_bet(session, bet_id, for_update=True)

    result = await session.execute(
        select(BetAssignee.id).where(
            BetAssignee.bet_id == bet_id, BetAssignee.user_id == user_id
        )
    )
    if result.scalar_one_or_none() is None:
        raise NotFound("User is not assigned to this bet")

    count_result = await session.execute(
        select(func.count()).select_from(BetAssignee).where(BetAssignee.bet_id == bet_id)
    )
    if (count_result.scalar_one() or 0) <= 1:
        raise InvalidState(
            "Cannot remove the last assignee from a private bet. "
            "Add another assignee first or change visibility to public."
        )

    try:
        await session.execute(
            delete(BetAssignee).where(
                BetAssignee.bet_id == bet_id, BetAssignee.user_id == user_id
            )
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Removed user {user_id} from bet {bet_id} assignees")
    return await bet_service.get_assignee_roster(session, bet_id)
