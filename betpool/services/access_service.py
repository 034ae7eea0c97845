"""
Authorization resolver for bets.

Decides who may view a bet and who may administer bets, based on the caller's
role, the bet's visibility and the private-bet assignee roster. Role is checked
once per operation through a Caller value instead of ad hoc dict lookups.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import select, and_, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from betpool.database.models import Bet, BetAssignee, BetVisibility, UserRole, UserStatus
from betpool.services.exceptions import Forbidden, Unauthenticated


@dataclass(frozen=True)
class Caller:
    """Resolved identity of whoever issued the request (possibly anonymous)."""

    user_id: Optional[int]
    role: UserRole = UserRole.USER
    status: Optional[UserStatus] = None

    @classmethod
    def anonymous(cls) -> "Caller":
        return cls(user_id=None)

    @classmethod
    def from_user(cls, user: Optional[Dict]) -> "Caller":
        """Build a Caller from a user dict as returned by user_service (None → anonymous)."""
        if user is None:
            return cls.anonymous()
        return cls(
            user_id=user["id"],
            role=UserRole(user["role"]),
            status=UserStatus(user["status"]),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


def can_administer(caller: Caller) -> bool:
    """Only admins create, edit, transition and assign bets."""
    return caller.is_admin


async def is_assigned(session: AsyncSession, bet_id: int, user_id: Optional[int]) -> bool:
    """Whether an assignee row exists for (bet_id, user_id)."""
    if user_id is None:
        return False
    result = await session.execute(
        select(BetAssignee.id)
        .where(BetAssignee.bet_id == bet_id, BetAssignee.user_id == user_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def can_view(session: AsyncSession, caller: Caller, bet: Bet) -> bool:
    """
    Read eligibility for a single bet.

    Admins see everything; public bets are visible to everyone, even anonymous
    callers; private bets only to their assignees.
    """
    if caller.is_admin:
        return True
    if bet.visibility == BetVisibility.PUBLIC.value:
        return True
    return await is_assigned(session, bet.id, caller.user_id)


async def ensure_can_view(session: AsyncSession, caller: Caller, bet: Bet) -> None:
    """
    Raise unless the caller may view the bet.

    Raises:
        Unauthenticated: Private bet and no identity was presented
        Forbidden: Private bet and the caller is not assigned to it
    """
    if bet.visibility == BetVisibility.PRIVATE.value and not caller.is_authenticated:
        raise Unauthenticated("Authentication required to view this bet")
    if not await can_view(session, caller, bet):
        raise Forbidden("You do not have permission to view this bet")


def visible_bets_clause(caller: Caller):
    """
    SQL predicate restricting a bet listing to what the caller can view.

    Returns None for admins (no restriction).
    """
    if caller.is_admin:
        return None
    if caller.user_id is None:
        return Bet.visibility == BetVisibility.PUBLIC.value

    assigned = exists().where(
        and_(BetAssignee.bet_id == Bet.id, BetAssignee.user_id == caller.user_id)
    )
    return or_(
        Bet.visibility == BetVisibility.PUBLIC.value,
        and_(Bet.visibility == BetVisibility.PRIVATE.value, assigned),
    )
