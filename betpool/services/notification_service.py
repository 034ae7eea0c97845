"""
Notification service for managing user notifications.

Handles creation, retrieval, and status updates for in-app notifications, plus the
fan-out helpers used when bets and accounts change.
"""

from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_
from betpool.database.models import BetParticipation, Notification
from betpool.services import user_service
from betpool.utils.datetime_utils import utcnow, isoformat_or_none
import json
import logging

logger = logging.getLogger(__name__)


def _notification_to_dict(notification: Notification) -> Dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": json.loads(notification.data) if notification.data else None,
        "is_read": notification.is_read,
        "read_at": isoformat_or_none(notification.read_at),
        "link_url": notification.link_url,
        "created_at": isoformat_or_none(notification.created_at),
    }


async def create_notification(
    session: AsyncSession,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None
) -> Dict:
    """
    Create a single notification for a user.

    Args:
        session: Database session
        user_id: ID of the user to notify
        type: Notification type (NotificationType enum value)
        title: Notification title
        message: Notification message text
        data: Optional JSON metadata (dict will be serialized to JSON string)
        link_url: Optional URL for navigation when notification is clicked

    Returns:
        Dict containing the created notification data

    Raises:
        ValueError: If required fields are missing or invalid
    """
    if not user_id:
        raise ValueError("user_id is required")
    if not type:
        raise ValueError("type is required")
    if not title:
        raise ValueError("title is required")
    if not message:
        raise ValueError("message is required")

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=json.dumps(data) if data is not None else None,
        link_url=link_url,
        is_read=False
    )

    session.add(notification)
    await session.flush()
    await session.refresh(notification)
    return _notification_to_dict(notification)


async def create_notifications_bulk(
    session: AsyncSession,
    notifications_list: List[Dict]
) -> List[Dict]:
    """
    Create multiple notifications with a single flush.

    Args:
        session: Database session
        notifications_list: List of notification dicts, each containing:
            - user_id (int, required)
            - type (str, required)
            - title (str, required)
            - message (str, required)
            - data (dict, optional) - will be serialized to JSON
            - link_url (str, optional)

    Returns:
        List of created notification dicts

    Raises:
        ValueError: If any notification data is invalid
    """
    if not notifications_list:
        return []

    notification_objects = []
    for notif_data in notifications_list:
        for field in ("user_id", "type", "title", "message"):
            if not notif_data.get(field):
                raise ValueError(f"{field} is required for all notifications")

        data = notif_data.get("data")
        notification_objects.append(
            Notification(
                user_id=notif_data["user_id"],
                type=notif_data["type"],
                title=notif_data["title"],
                message=notif_data["message"],
                data=json.dumps(data) if data is not None else None,
                link_url=notif_data.get("link_url"),
                is_read=False
            )
        )

    session.add_all(notification_objects)
    await session.flush()
    for notif in notification_objects:
        await session.refresh(notif)

    return [_notification_to_dict(notif) for notif in notification_objects]


async def get_user_notifications(
    session: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False
) -> Dict:
    """
    Fetch user notifications with pagination.

    Args:
        session: Database session
        user_id: ID of the user
        limit: Maximum number of notifications to return (default: 50)
        offset: Number of notifications to skip (default: 0)
        unread_only: If True, only return unread notifications (default: False)

    Returns:
        Dict containing:
            - notifications: List of notification dicts (newest first)
            - total_count: Total number of notifications matching the criteria
            - has_more: Boolean indicating if there are more notifications
    """
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712

    count_query = select(func.count()).select_from(query.subquery())
    total_count = (await session.execute(count_query)).scalar_one() or 0

    query = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(query)
    notification_dicts = [_notification_to_dict(notif) for notif in result.scalars().all()]

    return {
        "notifications": notification_dicts,
        "total_count": total_count,
        "has_more": (offset + len(notification_dicts)) < total_count,
    }


async def get_unread_count(session: AsyncSession, user_id: int) -> int:
    """Count of unread notifications for a user."""
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(
            and_(
                Notification.user_id == user_id,
                Notification.is_read == False  # noqa: E712
            )
        )
    )
    return result.scalar_one() or 0


async def mark_as_read(
    session: AsyncSession,
    notification_id: int,
    user_id: int
) -> Dict:
    """
    Mark a single notification as read.

    Args:
        session: Database session
        notification_id: ID of the notification
        user_id: ID of the user (ensures the user owns the notification)

    Returns:
        Updated notification dict

    Raises:
        ValueError: If notification not found or doesn't belong to user
    """
    result = await session.execute(
        select(Notification).where(
            and_(
                Notification.id == notification_id,
                Notification.user_id == user_id
            )
        )
    )
    notification = result.scalar_one_or_none()

    if not notification:
        raise ValueError("Notification not found or access denied")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await session.flush()
        await session.refresh(notification)

    return _notification_to_dict(notification)


async def mark_all_as_read(session: AsyncSession, user_id: int) -> int:
    """
    Mark all user notifications as read.

    Returns:
        Count of notifications marked as read
    """
    result = await session.execute(
        update(Notification)
        .where(
            and_(
                Notification.user_id == user_id,
                Notification.is_read == False  # noqa: E712
            )
        )
        .values(is_read=True, read_at=utcnow())
        .returning(Notification.id)
    )
    count = len(result.scalars().all())
    await session.flush()
    return count


#
# Fan-out helpers for bet and account events.
# These never raise: a failed notification must not fail the operation that caused it.
#

def _build_notifications(
    user_ids: List[int],
    type: str,
    title: str,
    message: str,
    data: Optional[Dict],
    link_url: Optional[str],
) -> List[Dict]:
    return [
        {
            "user_id": user_id,
            "type": type,
            "title": title,
            "message": message,
            "data": data,
            "link_url": link_url,
        }
        for user_id in user_ids
    ]


async def notify_all_active_users(
    session: AsyncSession,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
    exclude_user_id: Optional[int] = None,
    user_ids: Optional[List[int]] = None,
) -> int:
    """
    Notify every active user (or only the given user_ids, e.g. a private bet's assignees).

    Returns:
        Number of notifications created (0 on failure)
    """
    try:
        if user_ids is None:
            user_ids = await user_service.get_active_user_ids(session, exclude_user_id=exclude_user_id)
        else:
            user_ids = [uid for uid in user_ids if uid != exclude_user_id]
        if not user_ids:
            return 0

        created = await create_notifications_bulk(
            session, _build_notifications(user_ids, type, title, message, data, link_url)
        )
        return len(created)
    except Exception as e:
        logger.warning(f"Failed to create '{type}' notifications for active users: {e}")
        return 0


async def notify_admins(
    session: AsyncSession,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
) -> int:
    """Notify every active admin. Returns the number of notifications created."""
    try:
        admin_ids = await user_service.get_admin_user_ids(session)
        if not admin_ids:
            return 0

        created = await create_notifications_bulk(
            session, _build_notifications(admin_ids, type, title, message, data, link_url)
        )
        return len(created)
    except Exception as e:
        logger.warning(f"Failed to create '{type}' notifications for admins: {e}")
        return 0


async def notify_bet_participants(
    session: AsyncSession,
    bet_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
    exclude_user_id: Optional[int] = None,
) -> int:
    """
    Notify everyone who participated in a bet.

    Args:
        session: Database session
        bet_id: ID of the bet
        type: Notification type
        title: Notification title
        message: Notification message
        data: Optional metadata
        link_url: Optional navigation target
        exclude_user_id: Participant to skip (e.g. the one who just joined)

    Returns:
        Number of notifications created (0 on failure)
    """
    try:
        query = select(BetParticipation.user_id).where(BetParticipation.bet_id == bet_id)
        if exclude_user_id is not None:
            query = query.where(BetParticipation.user_id != exclude_user_id)
        participant_ids = list((await session.execute(query)).scalars().all())
        if not participant_ids:
            return 0

        created = await create_notifications_bulk(
            session, _build_notifications(participant_ids, type, title, message, data, link_url)
        )
        return len(created)
    except Exception as e:
        logger.warning(f"Failed to create '{type}' notifications for bet {bet_id} participants: {e}")
        return 0


async def notify_user(
    session: AsyncSession,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
) -> Optional[Dict]:
    """Notify a single user; returns None on failure."""
    try:
        return await create_notification(
            session=session,
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data,
            link_url=link_url,
        )
    except Exception as e:
        logger.warning(f"Failed to create '{type}' notification for user {user_id}: {e}")
        return None
