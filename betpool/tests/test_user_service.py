"""
Tests for user service: account creation, lookups and the account lifecycle.
"""

import pytest
from betpool.database.models import UserRole, UserStatus
from betpool.services import user_service
from betpool.services.exceptions import Conflict, InvalidState, NotFound


@pytest.mark.asyncio
async def test_create_user_starts_pending(db_session):
    user = await user_service.create_user(
        db_session, email=" New@Example.com ", password_hash="hash", full_name="  New User "
    )

    assert user["email"] == "new@example.com"
    assert user["full_name"] == "New User"
    assert user["status"] == UserStatus.PENDING.value
    assert user["role"] == UserRole.USER.value
    assert "password_hash" not in user


@pytest.mark.asyncio
async def test_create_user_duplicate_email(db_session, alice):
    with pytest.raises(Conflict) as exc_info:
        await user_service.create_user(db_session, email="ALICE@example.com", password_hash="hash")
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_get_user_by_email_include_password(db_session, alice):
    user = await user_service.get_user_by_email(db_session, "alice@example.com", include_password=True)
    assert user["id"] == alice.id
    assert user["password_hash"]

    without = await user_service.get_user_by_email(db_session, "alice@example.com")
    assert "password_hash" not in without

    assert await user_service.get_user_by_email(db_session, "nobody@example.com") is None


@pytest.mark.asyncio
async def test_get_user_by_id_missing(db_session):
    assert await user_service.get_user_by_id(db_session, 999) is None


@pytest.mark.asyncio
async def test_list_users(db_session, admin_user, alice, bob):
    users = await user_service.list_users(db_session)
    assert [u["email"] for u in users] == ["admin@example.com", "alice@example.com", "bob@example.com"]


@pytest.mark.asyncio
async def test_active_and_admin_user_ids(db_session, admin_user, alice, make_user):
    pending = await make_user("pending@example.com", status=UserStatus.PENDING)

    active_ids = await user_service.get_active_user_ids(db_session)
    assert set(active_ids) == {admin_user.id, alice.id}
    assert pending.id not in active_ids

    assert await user_service.get_active_user_ids(db_session, exclude_user_id=alice.id) == [admin_user.id]
    assert await user_service.get_admin_user_ids(db_session) == [admin_user.id]


@pytest.mark.asyncio
async def test_approve_user(db_session, make_user):
    pending = await make_user("pending@example.com", status=UserStatus.PENDING)

    user = await user_service.approve_user(db_session, pending.id)
    assert user["status"] == UserStatus.ACTIVE.value

    with pytest.raises(InvalidState, match="already active"):
        await user_service.approve_user(db_session, pending.id)


@pytest.mark.asyncio
async def test_approve_user_not_found(db_session):
    with pytest.raises(NotFound):
        await user_service.approve_user(db_session, 12345)


@pytest.mark.asyncio
async def test_deactivate_then_reactivate(db_session, admin_user, alice):
    with pytest.raises(InvalidState, match="not deactivated"):
        await user_service.reactivate_user(db_session, alice.id)

    user = await user_service.deactivate_user(db_session, alice.id, acting_admin_id=admin_user.id)
    assert user["status"] == UserStatus.DEACTIVATED.value

    with pytest.raises(InvalidState, match="already deactivated"):
        await user_service.deactivate_user(db_session, alice.id, acting_admin_id=admin_user.id)

    user = await user_service.reactivate_user(db_session, alice.id)
    assert user["status"] == UserStatus.ACTIVE.value


@pytest.mark.asyncio
async def test_admin_cannot_deactivate_self(db_session, admin_user):
    with pytest.raises(InvalidState, match="your own account"):
        await user_service.deactivate_user(db_session, admin_user.id, acting_admin_id=admin_user.id)
