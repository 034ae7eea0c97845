"""
Post-commit event delivery for bets and accounts.

Routes publish an event once their transaction has committed. Delivery runs as a
detached asyncio task with its own database session: it writes the in-app
notifications and posts the Telegram announcement. Delivery failures are logged
and never reach the request that published the event.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from betpool.database import db
from betpool.database.models import NotificationType
from betpool.services import notification_service, telegram_service

logger = logging.getLogger(__name__)

BET_CREATED = "bet_created"
BET_STATUS_CHANGED = "bet_status_changed"
PARTICIPANT_JOINED = "participant_joined"
USER_SIGNED_UP = "user_signed_up"
USER_APPROVED = "user_approved"
USER_REACTIVATED = "user_reactivated"


@dataclass
class BetEvent:
    """A committed fact about a bet (or an account) to fan out."""

    kind: str
    bet_id: Optional[int] = None
    title: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)
    actor_user_id: Optional[int] = None


_pending: Set[asyncio.Task] = set()


def _bet_link(bet_id: Optional[int]) -> Optional[str]:
    return f"/bet/{bet_id}" if bet_id is not None else None


async def _on_bet_created(session: AsyncSession, event: BetEvent) -> None:
    # Private bets are only announced in-app to their assignees
    recipients = None
    if event.payload.get("visibility") == "private":
        recipients = event.payload.get("assignee_ids") or []

    await notification_service.notify_all_active_users(
        session,
        type=NotificationType.NEW_BET.value,
        title="New bet available",
        message=f'"{event.title}" is open for participation',
        data={"bet_id": event.bet_id},
        link_url=_bet_link(event.bet_id),
        exclude_user_id=event.actor_user_id,
        user_ids=recipients,
    )


async def _on_status_changed(session: AsyncSession, event: BetEvent) -> None:
    status = event.payload.get("status")
    if status == "resolved":
        winning = event.payload.get("winning_option_text")
        await notification_service.notify_bet_participants(
            session,
            event.bet_id,
            type=NotificationType.BET_RESOLVED.value,
            title="Bet resolved",
            message=f'"{event.title}" was resolved. Winning option: {winning}',
            data={"bet_id": event.bet_id, "winning_option": winning},
            link_url=_bet_link(event.bet_id),
        )
    elif status == "in-progress":
        await notification_service.notify_bet_participants(
            session,
            event.bet_id,
            type=NotificationType.BET_IN_PROGRESS.value,
            title="Bet in progress",
            message=f'"{event.title}" is now in progress',
            data={"bet_id": event.bet_id},
            link_url=_bet_link(event.bet_id),
        )


async def _on_participant_joined(session: AsyncSession, event: BetEvent) -> None:
    name = event.payload.get("user_name") or "Someone"
    await notification_service.notify_bet_participants(
        session,
        event.bet_id,
        type=NotificationType.NEW_PARTICIPANT.value,
        title="New participant",
        message=f'{name} joined "{event.title}"',
        data={"bet_id": event.bet_id, "user_id": event.actor_user_id},
        link_url=_bet_link(event.bet_id),
        exclude_user_id=event.actor_user_id,
    )


async def _on_user_signed_up(session: AsyncSession, event: BetEvent) -> None:
    await notification_service.notify_admins(
        session,
        type=NotificationType.NEW_USER.value,
        title="New user awaiting approval",
        message=f"{event.title} signed up and is waiting for approval",
        data={"user_id": event.actor_user_id},
        link_url="/dashboard",
    )


async def _on_user_approved(session: AsyncSession, event: BetEvent) -> None:
    await notification_service.notify_user(
        session,
        event.payload["user_id"],
        type=NotificationType.ACCOUNT_APPROVED.value,
        title="Account approved",
        message="Your account has been approved. You can now participate in bets.",
        link_url="/dashboard",
    )


async def _on_user_reactivated(session: AsyncSession, event: BetEvent) -> None:
    await notification_service.notify_user(
        session,
        event.payload["user_id"],
        type=NotificationType.ACCOUNT_REACTIVATED.value,
        title="Account reactivated",
        message="Your account has been reactivated.",
        link_url="/dashboard",
    )


HANDLERS: Dict[str, Callable[[AsyncSession, BetEvent], Awaitable[None]]] = {
    BET_CREATED: _on_bet_created,
    BET_STATUS_CHANGED: _on_status_changed,
    PARTICIPANT_JOINED: _on_participant_joined,
    USER_SIGNED_UP: _on_user_signed_up,
    USER_APPROVED: _on_user_approved,
    USER_REACTIVATED: _on_user_reactivated,
}


def chat_message_for(event: BetEvent) -> Optional[str]:
    """Telegram text for the event, or None if the event is not announced in chat."""
    if event.kind == BET_CREATED:
        if event.payload.get("visibility") == "private":
            return None
        return telegram_service.format_bet_created(
            event.bet_id,
            event.title,
            event.payload.get("description", ""),
            event.payload.get("amount", 0),
            event.payload.get("options", []),
        )
    if event.kind == BET_STATUS_CHANGED:
        return telegram_service.format_status_change(
            event.bet_id,
            event.title,
            event.payload.get("status"),
            event.payload.get("participation_count", 0),
            event.payload.get("winning_option_text"),
        )
    return None


async def deliver(event: BetEvent) -> None:
    """Write notifications for the event in a fresh session, then announce it in chat."""
    handler = HANDLERS.get(event.kind)
    if handler is None:
        logger.warning(f"No handler for event kind '{event.kind}'")
        return

    try:
        async with db.AsyncSessionLocal() as session:
            await handler(session, event)
            await session.commit()
    except Exception as e:
        logger.warning(f"Failed to deliver notifications for {event.kind} (bet {event.bet_id}): {e}")

    text = chat_message_for(event)
    if text:
        await telegram_service.send_message(text)


def publish(event: BetEvent) -> Optional[asyncio.Task]:
    """
    Schedule delivery of an event without waiting for it.

    Must be called after the publishing transaction has committed.

    Returns:
        The delivery task, or None when no event loop is running
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning(f"No running event loop, dropping {event.kind} event")
        return None

    task = loop.create_task(deliver(event))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain() -> None:
    """Wait for every pending delivery (shutdown and tests)."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
