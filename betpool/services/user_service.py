"""
User service layer for account database operations and the account lifecycle.
"""

from typing import Optional, Dict, List, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from betpool.database.models import User, UserRole, UserStatus
from betpool.services.exceptions import Conflict, InvalidState, NotFound
from betpool.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User, include_password: bool = False) -> Dict:
    """Convert a User row to a response dict (password hash excluded unless asked)."""
    user_dict = {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "status": user.status,
        "has_accepted_terms": user.has_accepted_terms,
        "created_at": isoformat_or_none(user.created_at),
        "updated_at": isoformat_or_none(user.updated_at),
    }
    if include_password:
        user_dict["password_hash"] = user.password_hash
    return user_dict


async def create_user(
    session: AsyncSession,
    email: str,
    password_hash: str,
    full_name: Optional[str] = None,
    role: str = UserRole.USER.value,
    status: str = UserStatus.PENDING.value,
) -> Dict:
    """
    Create a new user account.

    Args:
        session: Database session
        email: Email address (normalized to lowercase)
        password_hash: Required hashed password
        full_name: Optional display name
        role: Account role (defaults to user)
        status: Initial status (signups always start pending)

    Returns:
        Dict of the created user

    Raises:
        Conflict: If a user with this email already exists
    """
    email = email.strip().lower()
    result = await session.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none():
        raise Conflict("User with this email already exists")

    new_user = User(
        email=email,
        password_hash=password_hash,
        full_name=full_name.strip() if full_name else None,
        role=role,
        status=status,
    )
    session.add(new_user)
    await session.flush()
    await session.refresh(new_user)
    await session.commit()

    logger.info(f"Created user {new_user.id} ({role}, {status})")
    return _user_to_dict(new_user)


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_email(
    session: AsyncSession, email: str, include_password: bool = False
) -> Optional[Dict]:
    """
    Get user by email address.

    Args:
        session: Database session
        email: Email address (will be normalized to lowercase)
        include_password: Include the password hash (login only)

    Returns:
        User dictionary or None if not found
    """
    email = email.strip().lower() if email else None
    if not email:
        return None

    result = await session.execute(
        select(User).where(func.lower(func.trim(User.email)) == email).limit(1)
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user, include_password=include_password) if user else None


async def list_users(session: AsyncSession) -> List[Dict]:
    """All users ordered by signup time."""
    result = await session.execute(select(User).order_by(User.created_at, User.id))
    return [_user_to_dict(user) for user in result.scalars().all()]


async def get_users_by_ids(session: AsyncSession, user_ids: Iterable[int]) -> List[User]:
    """Fetch the User rows whose ids are in user_ids (missing ids are simply absent)."""
    ids = list(user_ids)
    if not ids:
        return []
    result = await session.execute(select(User).where(User.id.in_(ids)).order_by(User.id))
    return list(result.scalars().all())


async def get_active_user_ids(
    session: AsyncSession, exclude_user_id: Optional[int] = None
) -> List[int]:
    """IDs of every active account, optionally excluding one user."""
    query = select(User.id).where(User.status == UserStatus.ACTIVE.value)
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_admin_user_ids(session: AsyncSession) -> List[int]:
    """IDs of every active admin."""
    result = await session.execute(
        select(User.id).where(
            User.role == UserRole.ADMIN.value,
            User.status == UserStatus.ACTIVE.value,
        )
    )
    return list(result.scalars().all())


async def _get_user_row(session: AsyncSession, user_id: int) -> User:
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def approve_user(session: AsyncSession, user_id: int) -> Dict:
    """
    Approve a pending (or otherwise inactive) account.

    Raises:
        NotFound: If the user does not exist
        InvalidState: If the user is already active
    """
    user = await _get_user_row(session, user_id)
    if user.status == UserStatus.ACTIVE.value:
        raise InvalidState("User is already active")

    user.status = UserStatus.ACTIVE.value
    await session.flush()
    await session.refresh(user)
    await session.commit()
    logger.info(f"Approved user {user_id}")
    return _user_to_dict(user)


async def reactivate_user(session: AsyncSession, user_id: int) -> Dict:
    """
    Reactivate a deactivated account.

    Raises:
        NotFound: If the user does not exist
        InvalidState: If the user is not deactivated
    """
    user = await _get_user_row(session, user_id)
    if user.status != UserStatus.DEACTIVATED.value:
        raise InvalidState("User is not deactivated")

    user.status = UserStatus.ACTIVE.value
    await session.flush()
    await session.refresh(user)
    await session.commit()
    logger.info(f"Reactivated user {user_id}")
    return _user_to_dict(user)


async def deactivate_user(session: AsyncSession, user_id: int, acting_admin_id: int) -> Dict:
    """
    Deactivate (suspend) an account.

    Raises:
        NotFound: If the user does not exist
        InvalidState: If the user is already deactivated or is the acting admin
    """
    if user_id == acting_admin_id:
        raise InvalidState("You cannot deactivate your own account")

    user = await _get_user_row(session, user_id)
    if user.status == UserStatus.DEACTIVATED.value:
        raise InvalidState("User is already deactivated")

    user.status = UserStatus.DEACTIVATED.value
    await session.flush()
    await session.refresh(user)
    await session.commit()
    logger.info(f"Deactivated user {user_id} by admin {acting_admin_id}")
    return _user_to_dict(user)
