"""
Tests for the private-bet assignment manager.
"""

import pytest
from betpool.database.models import UserStatus
from betpool.services import assignment_service, user_service
from betpool.services.exceptions import Conflict, InvalidInput, InvalidState, NotFound


@pytest.mark.asyncio
async def test_add_assignees_skips_existing(db_session, make_bet, admin_user, alice, bob):
    bet = await make_bet(visibility="private", assignees=[alice.id])

    roster = await assignment_service.add_assignees(db_session, admin_user.id, bet["id"], [alice.id, bob.id])

    assert sorted(a["user_id"] for a in roster) == sorted([alice.id, bob.id])
    bob_row = next(a for a in roster if a["user_id"] == bob.id)
    assert bob_row["assigned_by"] == admin_user.id
    assert bob_row["email"] == "bob@example.com"


@pytest.mark.asyncio
async def test_add_assignees_all_redundant(db_session, make_bet, admin_user, alice):
    bet = await make_bet(visibility="private", assignees=[alice.id])

    with pytest.raises(Conflict, match="already assigned"):
        await assignment_service.add_assignees(db_session, admin_user.id, bet["id"], [alice.id])


@pytest.mark.asyncio
async def test_add_assignees_to_public_bet(db_session, make_bet, admin_user, alice):
    bet = await make_bet()

    with pytest.raises(InvalidState, match="public bet"):
        await assignment_service.add_assignees(db_session, admin_user.id, bet["id"], [alice.id])


@pytest.mark.asyncio
async def test_add_assignees_unknown_user(db_session, make_bet, admin_user, alice, bob):
    bet = await make_bet(visibility="private", assignees=[alice.id])

    with pytest.raises(NotFound, match="do not exist"):
        await assignment_service.add_assignees(db_session, admin_user.id, bet["id"], [bob.id, 9999])

    roster = await assignment_service.list_assignees(db_session, bet["id"])
    assert [a["user_id"] for a in roster] == [alice.id]


@pytest.mark.asyncio
async def test_add_assignees_rejects_inactive_batch(db_session, make_bet, make_user, admin_user, alice, bob):
    bet = await make_bet(visibility="private", assignees=[alice.id])
    pending = await make_user("pending@example.com", status=UserStatus.PENDING)

    with pytest.raises(InvalidState, match="inactive users"):
        await assignment_service.add_assignees(db_session, admin_user.id, bet["id"], [bob.id, pending.id])

    roster = await assignment_service.list_assignees(db_session, bet["id"])
    assert [a["user_id"] for a in roster] == [alice.id]


@pytest.mark.asyncio
@pytest.mark.parametrize("user_ids", [[], None, "1,2", [True]])
async def test_add_assignees_invalid_input(db_session, make_bet, admin_user, alice, user_ids):
    bet = await make_bet(visibility="private", assignees=[alice.id])

    with pytest.raises(InvalidInput):
        await assignment_service.add_assignees(db_session, admin_user.id, bet["id"], user_ids)


@pytest.mark.asyncio
async def test_add_assignees_missing_bet(db_session, admin_user, alice):
    with pytest.raises(NotFound):
        await assignment_service.add_assignees(db_session, admin_user.id, 404, [alice.id])


@pytest.mark.asyncio
async def test_remove_last_assignee_refused(db_session, make_bet, alice):
    bet = await make_bet(visibility="private", assignees=[alice.id])

    with pytest.raises(InvalidState, match="last assignee"):
        await assignment_service.remove_assignee(db_session, bet["id"], alice.id)

    roster = await assignment_service.list_assignees(db_session, bet["id"])
    assert len(roster) == 1


@pytest.mark.asyncio
async def test_add_second_then_remove_first(db_session, make_bet, admin_user, alice, bob):
    bet = await make_bet(visibility="private", assignees=[alice.id])
    await assignment_service.add_assignees(db_session, admin_user.id, bet["id"], [bob.id])

    remaining = await assignment_service.remove_assignee(db_session, bet["id"], alice.id)

    assert [a["user_id"] for a in remaining] == [bob.id]


@pytest.mark.asyncio
async def test_remove_unassigned_user(db_session, make_bet, alice, bob):
    bet = await make_bet(visibility="private", assignees=[alice.id])

    with pytest.raises(NotFound, match="not assigned"):
        await assignment_service.remove_assignee(db_session, bet["id"], bob.id)


@pytest.mark.asyncio
async def test_list_assignees_active_only(db_session, make_bet, admin_user, alice, bob):
    bet = await make_bet(visibility="private", assignees=[alice.id, bob.id])
    await user_service.deactivate_user(db_session, bob.id, acting_admin_id=admin_user.id)

    everyone = await assignment_service.list_assignees(db_session, bet["id"])
    active = await assignment_service.list_assignees(db_session, bet["id"], active_only=True)

    assert len(everyone) == 2
    assert [a["user_id"] for a in active] == [alice.id]
