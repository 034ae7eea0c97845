"""
Tests for the authorization resolver: bet visibility for admins, assignees,
other users and anonymous callers.
"""

import pytest
from sqlalchemy import select
from betpool.database.models import Bet, UserRole, UserStatus
from betpool.services import access_service, bet_service
from betpool.services.access_service import Caller
from betpool.services.exceptions import Forbidden, Unauthenticated


def _caller(user, role=UserRole.USER):
    return Caller(user_id=user.id, role=role, status=UserStatus.ACTIVE)


class TestCaller:
    def test_anonymous(self):
        caller = Caller.anonymous()
        assert not caller.is_authenticated
        assert not caller.is_admin
        assert not caller.is_active

    def test_from_user_dict(self):
        caller = Caller.from_user({"id": 3, "role": "admin", "status": "active"})
        assert caller.user_id == 3
        assert caller.is_admin
        assert caller.is_active
        assert access_service.can_administer(caller)

    def test_from_none_is_anonymous(self):
        assert Caller.from_user(None) == Caller.anonymous()

    def test_regular_user_cannot_administer(self):
        caller = Caller.from_user({"id": 3, "role": "user", "status": "active"})
        assert not access_service.can_administer(caller)


@pytest.mark.asyncio
async def test_public_bet_visible_to_everyone(db_session, make_bet, alice):
    created = await make_bet()
    bet = await bet_service.get_bet(db_session, created["id"])

    assert await access_service.can_view(db_session, Caller.anonymous(), bet)
    assert await access_service.can_view(db_session, _caller(alice), bet)
    await access_service.ensure_can_view(db_session, Caller.anonymous(), bet)


@pytest.mark.asyncio
async def test_private_bet_visibility(db_session, make_bet, admin_user, alice, bob):
    created = await make_bet(visibility="private", assignees=[alice.id])
    bet = await bet_service.get_bet(db_session, created["id"])

    assert await access_service.can_view(db_session, _caller(admin_user, UserRole.ADMIN), bet)
    assert await access_service.can_view(db_session, _caller(alice), bet)
    assert not await access_service.can_view(db_session, _caller(bob), bet)
    assert not await access_service.can_view(db_session, Caller.anonymous(), bet)

    with pytest.raises(Forbidden):
        await access_service.ensure_can_view(db_session, _caller(bob), bet)
    with pytest.raises(Unauthenticated):
        await access_service.ensure_can_view(db_session, Caller.anonymous(), bet)


@pytest.mark.asyncio
async def test_visible_bets_clause(db_session, make_bet, admin_user, alice, bob):
    public = await make_bet(title="Public")
    private_alice = await make_bet(title="Alice only", visibility="private", assignees=[alice.id])
    private_bob = await make_bet(title="Bob only", visibility="private", assignees=[bob.id])

    async def visible_ids(caller):
        query = select(Bet.id)
        clause = access_service.visible_bets_clause(caller)
        if clause is not None:
            query = query.where(clause)
        return set((await db_session.execute(query)).scalars().all())

    assert await visible_ids(_caller(admin_user, UserRole.ADMIN)) == {
        public["id"], private_alice["id"], private_bob["id"]
    }
    assert await visible_ids(_caller(alice)) == {public["id"], private_alice["id"]}
    assert await visible_ids(_caller(bob)) == {public["id"], private_bob["id"]}
    assert await visible_ids(Caller.anonymous()) == {public["id"]}
