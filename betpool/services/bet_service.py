"""
Bet service for the bet aggregate: bets with their options, participations and assignees.

Handles creation, editing, option replacement, detail views and the role-scoped
listings. Every multi-step mutation runs as one unit of work that is committed
at the end or rolled back as a whole.
"""

from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, and_
from betpool.database.models import (
    Bet,
    BetAssignee,
    BetOption,
    BetParticipation,
    BetStatus,
    BetVisibility,
    User,
)
from betpool.services import access_service, user_service
from betpool.services.access_service import Caller
from betpool.services.exceptions import InvalidInput, InvalidState, NotFound
from betpool.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2
MAX_PAGE_SIZE = 100
LISTING_TABS = ("all", "active", "in-progress", "resolved", "private")


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _clean_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field} must be a non-empty string")
    return value.strip()


def _clean_amount(amount: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInput("Amount must be a positive integer")
    return amount


def clean_options(options: Any) -> List[str]:
    """
    Validate an option list and return the trimmed texts.

    Raises:
        InvalidInput: Fewer than two options, or any option empty after trimming
    """
    if not isinstance(options, (list, tuple)) or len(options) < MIN_OPTIONS:
        raise InvalidInput(f"At least {MIN_OPTIONS} options are required")
    if any(not isinstance(option, str) or not option.strip() for option in options):
        raise InvalidInput("All options must be non-empty strings")
    return [option.strip() for option in options]


def clean_user_ids(user_ids: Any, field: str = "Assignees") -> List[int]:
    """Validate a list of user ids, dropping duplicates while keeping order."""
    if not isinstance(user_ids, (list, tuple)) or not user_ids:
        raise InvalidInput(f"{field} must be a non-empty array of user IDs")
    cleaned: List[int] = []
    for user_id in user_ids:
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise InvalidInput(f"{field} must contain integer user IDs")
        if user_id not in cleaned:
            cleaned.append(user_id)
    return cleaned


def _clean_visibility(visibility: Any) -> str:
    values = [v.value for v in BetVisibility]
    if visibility not in values:
        raise InvalidInput("Visibility must be 'public' or 'private'")
    return visibility


async def _resolve_assignee_users(session: AsyncSession, user_ids: List[int]) -> List[User]:
    """Every requested id must map to an existing user, otherwise nothing is written."""
    users = await user_service.get_users_by_ids(session, user_ids)
    if len(users) != len(user_ids):
        raise NotFound("One or more assignees do not exist")
    return users


# ---------------------------------------------------------------------------
# Row access and serialization
# ---------------------------------------------------------------------------


async def get_bet(session: AsyncSession, bet_id: int, for_update: bool = False) -> Bet:
    """
    Load a bet row.

    Args:
        session: Database session
        bet_id: Bet ID
        for_update: Take a row lock for the rest of the transaction (no-op on SQLite)

    Raises:
        NotFound: If the bet does not exist
    """
    query = select(Bet).where(Bet.id == bet_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    bet = result.scalar_one_or_none()
    if bet is None:
        raise NotFound("Bet not found")
    return bet


def bet_to_dict(bet: Bet) -> Dict:
    """Scalar fields of a bet."""
    return {
        "id": bet.id,
        "title": bet.title,
        "description": bet.description,
        "amount": bet.amount,
        "status": bet.status,
        "visibility": bet.visibility,
        "winning_option": bet.winning_option,
        "created_at": isoformat_or_none(bet.created_at),
        "updated_at": isoformat_or_none(bet.updated_at),
    }


async def get_options(session: AsyncSession, bet_id: int) -> List[Dict]:
    """Options of a bet ordered by id."""
    result = await session.execute(
        select(BetOption.id, BetOption.option_text)
        .where(BetOption.bet_id == bet_id)
        .order_by(BetOption.id)
    )
    return [{"id": row.id, "option_text": row.option_text} for row in result.all()]


async def get_participation_count(session: AsyncSession, bet_id: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(BetParticipation).where(BetParticipation.bet_id == bet_id)
    )
    return result.scalar_one() or 0


async def get_assignee_roster(
    session: AsyncSession, bet_id: int, active_only: bool = False
) -> List[Dict]:
    """
    Assignees of a bet joined with their user details.

    Args:
        session: Database session
        bet_id: Bet ID
        active_only: Only include users whose account is active
    """
    query = (
        select(
            BetAssignee.user_id,
            User.email,
            User.full_name,
            BetAssignee.assigned_at,
            BetAssignee.assigned_by,
        )
        .join(User, BetAssignee.user_id == User.id)
        .where(BetAssignee.bet_id == bet_id)
        .order_by(BetAssignee.id)
    )
    if active_only:
        query = query.where(User.status == "active")
    result = await session.execute(query)
    return [
        {
            "user_id": row.user_id,
            "email": row.email,
            "full_name": row.full_name,
            "assigned_at": isoformat_or_none(row.assigned_at),
            "assigned_by": row.assigned_by,
        }
        for row in result.all()
    ]


def _winning_option_text(bet: Bet, options: Sequence[Dict]) -> Optional[str]:
    if bet.status != BetStatus.RESOLVED.value or not bet.winning_option:
        return None
    for option in options:
        if str(option["id"]) == bet.winning_option:
            return option["option_text"]
    return None


async def get_bet_summary(session: AsyncSession, bet_id: int) -> Dict:
    """Bet with options, participation count and winning option text."""
    bet = await get_bet(session, bet_id)
    options = await get_options(session, bet_id)
    return {
        **bet_to_dict(bet),
        "winning_option_text": _winning_option_text(bet, options),
        "options": options,
        "participation_count": await get_participation_count(session, bet_id),
    }


async def _replace_assignees(
    session: AsyncSession, bet_id: int, users: List[User], assigned_by: int
) -> None:
    await session.execute(delete(BetAssignee).where(BetAssignee.bet_id == bet_id))
    session.add_all(
        [BetAssignee(bet_id=bet_id, user_id=user.id, assigned_by=assigned_by) for user in users]
    )
    await session.flush()


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def create_bet(
    session: AsyncSession,
    admin_id: int,
    title: Any,
    description: Any,
    amount: Any,
    options: Any,
    visibility: Any = BetVisibility.PUBLIC.value,
    assignees: Any = None,
) -> Dict:
    """
    Create a bet with its options (and assignees for private bets) atomically.

    Args:
        session: Database session
        admin_id: ID of the admin creating the bet (recorded as assigner)
        title: Bet title
        description: Bet description
        amount: Positive integer stake
        options: At least two option texts
        visibility: 'public' (default) or 'private'
        assignees: User IDs allowed to see a private bet (required when private)

    Returns:
        Dict of the created bet with its options and assignee roster

    Raises:
        InvalidInput: If any field is missing or malformed
        NotFound: If an assignee ID does not resolve to a user
    """
    title = _clean_text(title, "Title")
    description = _clean_text(description, "Description")
    amount = _clean_amount(amount)
    option_texts = clean_options(options)
    visibility = _clean_visibility(visibility or BetVisibility.PUBLIC.value)

    assignee_users: List[User] = []
    if visibility == BetVisibility.PRIVATE.value:
        if not assignees:
            raise InvalidInput("Private bets require at least one assignee")
        assignee_users = await _resolve_assignee_users(session, clean_user_ids(assignees))

    try:
        bet = Bet(
            title=title,
            description=description,
            amount=amount,
            status=BetStatus.ACTIVE.value,
            visibility=visibility,
        )
        session.add(bet)
        await session.flush()

        session.add_all([BetOption(bet_id=bet.id, option_text=text) for text in option_texts])
        session.add_all(
            [
                BetAssignee(bet_id=bet.id, user_id=user.id, assigned_by=admin_id)
                for user in assignee_users
            ]
        )
        await session.flush()
        await session.refresh(bet)
        bet_id = bet.id
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        f"Admin {admin_id} created {visibility} bet {bet_id} "
        f"with {len(option_texts)} options and {len(assignee_users)} assignees"
    )
    result = {
        **bet_to_dict(bet),
        "options": await get_options(session, bet_id),
        "participation_count": 0,
        "assignees": None,
    }
    if visibility == BetVisibility.PRIVATE.value:
        result["assignees"] = await get_assignee_roster(session, bet_id)
    return result


async def edit_bet(
    session: AsyncSession,
    admin_id: int,
    bet_id: int,
    title: Any,
    description: Any,
    amount: Any,
    visibility: Any = None,
    assignees: Any = None,
) -> Dict:
    """
    Update a bet's scalar fields and, when visibility changes, its assignee roster.

    Switching to private (or resubmitting a private bet with assignees) replaces the
    whole roster; switching private → public deletes every assignee row. Options are
    not touched here (see replace_options).

    Raises:
        NotFound: If the bet or an assignee does not exist
        InvalidState: If the bet is resolved
        InvalidInput: If fields are malformed or a private bet would have no assignees
    """
    title = _clean_text(title, "Title")
    description = _clean_text(description, "Description")
    amount = _clean_amount(amount)
    if visibility is not None:
        visibility = _clean_visibility(visibility)

    bet = await get_bet(session, bet_id, for_update=True)
    if bet.status == BetStatus.RESOLVED.value:
        raise InvalidState("Cannot edit resolved bets")

    previous_visibility = bet.visibility
    new_visibility = visibility or previous_visibility

    assignee_users: Optional[List[User]] = None
    if new_visibility == BetVisibility.PRIVATE.value:
        if assignees is not None:
            assignee_users = await _resolve_assignee_users(session, clean_user_ids(assignees))
        elif previous_visibility == BetVisibility.PUBLIC.value:
            raise InvalidInput("Private bets require at least one assignee")

    try:
        bet.title = title
        bet.description = description
        bet.amount = amount
        bet.visibility = new_visibility

        if assignee_users is not None:
            await _replace_assignees(session, bet_id, assignee_users, admin_id)
        elif (
            previous_visibility == BetVisibility.PRIVATE.value
            and new_visibility == BetVisibility.PUBLIC.value
        ):
            await session.execute(delete(BetAssignee).where(BetAssignee.bet_id == bet_id))

        await session.flush()
        await session.refresh(bet)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Admin {admin_id} edited bet {bet_id} ({previous_visibility} -> {new_visibility})")
    result = await get_bet_summary(session, bet_id)
    result["assignees"] = (
        await get_assignee_roster(session, bet_id)
        if new_visibility == BetVisibility.PRIVATE.value
        else None
    )
    return result


async def replace_options(session: AsyncSession, bet_id: int, options: Any) -> Dict:
    """
    Replace a bet's whole option set (delete all, insert all) in one transaction.

    Only allowed while nobody has participated, since participations reference options.

    Raises:
        NotFound: If the bet does not exist
        InvalidState: If the bet is resolved or already has participations
        InvalidInput: If the new option list is invalid
    """
    option_texts = clean_options(options)

    bet = await get_bet(session, bet_id, for_update=True)
    if bet.status == BetStatus.RESOLVED.value:
        raise InvalidState("Cannot edit resolved bets")
    if await get_participation_count(session, bet_id) > 0:
        raise InvalidState("Cannot replace options after users have participated")

    try:
        await session.execute(delete(BetOption).where(BetOption.bet_id == bet_id))
        session.add_all([BetOption(bet_id=bet_id, option_text=text) for text in option_texts])
        await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Replaced options of bet {bet_id} ({len(option_texts)} options)")
    return await get_bet_summary(session, bet_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_bet_detail(session: AsyncSession, bet_id: int, caller: Caller) -> Dict:
    """
    Full bet view: options, participants, and assignees for private bets.

    Authorization is applied before anything is composed, so an unauthorized caller
    never receives a partial body.

    Raises:
        NotFound: If the bet does not exist
        Unauthenticated: Private bet and anonymous caller
        Forbidden: Private bet and caller not assigned
    """
    bet = await get_bet(session, bet_id)
    await access_service.ensure_can_view(session, caller, bet)

    options = await get_options(session, bet_id)
    option_text_by_id = {option["id"]: option["option_text"] for option in options}

    result = await session.execute(
        select(
            BetParticipation.id,
            BetParticipation.user_id,
            User.email,
            User.full_name,
            BetParticipation.selected_option_id,
            BetParticipation.is_winner,
            BetParticipation.participated_at,
        )
        .join(User, BetParticipation.user_id == User.id)
        .where(BetParticipation.bet_id == bet_id)
        .order_by(BetParticipation.participated_at, BetParticipation.id)
    )
    participants = [
        {
            "id": row.id,
            "user_id": row.user_id,
            "user_email": row.email,
            "user_full_name": row.full_name,
            "selected_option_id": row.selected_option_id,
            "selected_option_text": option_text_by_id.get(row.selected_option_id),
            "is_winner": row.is_winner,
            "participated_at": isoformat_or_none(row.participated_at),
        }
        for row in result.all()
    ]

    detail = {
        **bet_to_dict(bet),
        "winning_option_text": _winning_option_text(bet, options),
        "options": options,
        "participants": participants,
        "participation_count": len(participants),
        "has_user_participated": any(p["user_id"] == caller.user_id for p in participants),
        "assignees": None,
        "is_assigned": None,
    }
    if bet.visibility == BetVisibility.PRIVATE.value:
        roster = await get_assignee_roster(session, bet_id)
        detail["assignees"] = roster
        detail["is_assigned"] = any(a["user_id"] == caller.user_id for a in roster)
    return detail


async def _options_by_bet(session: AsyncSession, bet_ids: List[int]) -> Dict[int, List[Dict]]:
    options: Dict[int, List[Dict]] = {bet_id: [] for bet_id in bet_ids}
    if not bet_ids:
        return options
    result = await session.execute(
        select(BetOption.id, BetOption.bet_id, BetOption.option_text)
        .where(BetOption.bet_id.in_(bet_ids))
        .order_by(BetOption.id)
    )
    for row in result.all():
        options[row.bet_id].append({"id": row.id, "option_text": row.option_text})
    return options


async def _participation_counts(session: AsyncSession, bet_ids: List[int]) -> Dict[int, int]:
    if not bet_ids:
        return {}
    result = await session.execute(
        select(BetParticipation.bet_id, func.count())
        .where(BetParticipation.bet_id.in_(bet_ids))
        .group_by(BetParticipation.bet_id)
    )
    return {bet_id: count for bet_id, count in result.all()}


async def list_all_bets(session: AsyncSession) -> List[Dict]:
    """
    Admin listing of every bet with options, participation count and, for
    private bets, the assignee roster. Ordered by creation time.
    """
    result = await session.execute(select(Bet).order_by(Bet.created_at, Bet.id))
    bets = list(result.scalars().all())
    bet_ids = [bet.id for bet in bets]

    options = await _options_by_bet(session, bet_ids)
    counts = await _participation_counts(session, bet_ids)

    rosters: Dict[int, List[Dict]] = {}
    private_ids = [bet.id for bet in bets if bet.visibility == BetVisibility.PRIVATE.value]
    if private_ids:
        roster_result = await session.execute(
            select(
                BetAssignee.bet_id,
                BetAssignee.user_id,
                User.email,
                User.full_name,
                BetAssignee.assigned_at,
                BetAssignee.assigned_by,
            )
            .join(User, BetAssignee.user_id == User.id)
            .where(BetAssignee.bet_id.in_(private_ids))
            .order_by(BetAssignee.id)
        )
        for row in roster_result.all():
            rosters.setdefault(row.bet_id, []).append(
                {
                    "user_id": row.user_id,
                    "email": row.email,
                    "full_name": row.full_name,
                    "assigned_at": isoformat_or_none(row.assigned_at),
                    "assigned_by": row.assigned_by,
                }
            )

    return [
        {
            **bet_to_dict(bet),
            "winning_option_text": _winning_option_text(bet, options[bet.id]),
            "options": options[bet.id],
            "participation_count": counts.get(bet.id, 0),
            "assignees": (
                rosters.get(bet.id, []) if bet.visibility == BetVisibility.PRIVATE.value else None
            ),
        }
        for bet in bets
    ]


async def list_user_bets(
    session: AsyncSession,
    caller: Caller,
    tab: str = "all",
    page: int = 1,
    limit: int = 10,
) -> Dict:
    """
    Paginated, role-scoped bet listing.

    Admins see every bet; other callers see public bets plus the private bets they
    are assigned to. Newest first.

    Args:
        session: Database session
        caller: Requesting identity
        tab: all | active | in-progress | resolved | private
        page: 1-based page number
        limit: Page size (1-100)

    Returns:
        Dict with bets, total, total_pages, page and limit

    Raises:
        InvalidInput: On bad pagination parameters or an unknown tab
    """
    if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
        raise InvalidInput("Invalid pagination parameters")
    if tab not in LISTING_TABS:
        raise InvalidInput(f"Invalid tab. Must be one of: {', '.join(LISTING_TABS)}")

    conditions = []
    if tab in (BetStatus.ACTIVE.value, BetStatus.IN_PROGRESS.value, BetStatus.RESOLVED.value):
        conditions.append(Bet.status == tab)
    elif tab == "private":
        conditions.append(Bet.visibility == BetVisibility.PRIVATE.value)

    visibility_clause = access_service.visible_bets_clause(caller)
    if visibility_clause is not None:
        conditions.append(visibility_clause)
    where_clause = and_(*conditions) if conditions else None

    count_query = select(func.count()).select_from(Bet)
    page_query = select(Bet).order_by(Bet.created_at.desc(), Bet.id.desc())
    if where_clause is not None:
        count_query = count_query.where(where_clause)
        page_query = page_query.where(where_clause)

    total = (await session.execute(count_query)).scalar_one() or 0
    total_pages = (total + limit - 1) // limit

    result = await session.execute(page_query.limit(limit).offset((page - 1) * limit))
    bets = list(result.scalars().all())
    bet_ids = [bet.id for bet in bets]

    options = await _options_by_bet(session, bet_ids)
    counts = await _participation_counts(session, bet_ids)

    participated: set = set()
    assigned: set = set()
    if caller.user_id is not None and bet_ids:
        participated_result = await session.execute(
            select(BetParticipation.bet_id).where(
                BetParticipation.user_id == caller.user_id,
                BetParticipation.bet_id.in_(bet_ids),
            )
        )
        participated = set(participated_result.scalars().all())
        assigned_result = await session.execute(
            select(BetAssignee.bet_id).where(
                BetAssignee.user_id == caller.user_id,
                BetAssignee.bet_id.in_(bet_ids),
            )
        )
        assigned = set(assigned_result.scalars().all())

    return {
        "bets": [
            {
                **bet_to_dict(bet),
                "winning_option_text": _winning_option_text(bet, options[bet.id]),
                "options": options[bet.id],
                "participation_count": counts.get(bet.id, 0),
                "has_user_participated": bet.id in participated,
                "is_assigned": (
                    bet.id in assigned if bet.visibility == BetVisibility.PRIVATE.value else None
                ),
            }
            for bet in bets
        ],
        "total": total,
        "total_pages": total_pages,
        "page": page,
        "limit": limit,
    }
