"""Bet lifecycle service against a real (SQLite) session."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from ibetu.bets import service
from ibetu.bets.lifecycle import get_display_status
from ibetu.bets.notifier import BetNotifier
from ibetu.db.models import Bet, User, UserAchievement
from ibetu.errors import AuthorizationError, NotFoundError, ValidationError

TOMORROW = datetime.now(timezone.utc) + timedelta(days=1)


async def _user(db, user_id: str) -> User:
    return await db.get(User, user_id, populate_existing=True)


async def _create(db, creator, opponent_id="bob", amount="50.00", **kwargs) -> Bet:
    return await service.create_bet(
        db,
        creator,
        opponent_id=opponent_id,
        title="Lakers win tonight",
        description="Regular time only",
        amount=Decimal(amount),
        deadline=kwargs.pop("deadline", TOMORROW),
        **kwargs,
    )


class TestCreateBet:
    @pytest.mark.asyncio
    async def test_creates_pending_bet(self, db_session, alice_and_bob):
        alice, _ = alice_and_bob
        bet = await _create(db_session, alice)

        assert bet.id is not None
        assert bet.status == "pending"
        assert bet.outcome == "pending"
        assert bet.amount == Decimal("50.00")
        assert bet.verification_method == "mutual_agreement"
        assert not bet.creator_approved and not bet.opponent_approved

    @pytest.mark.asyncio
    async def test_requires_accepted_friendship(self, db_session, make_user, make_friendship):
        alice = await make_user("alice")
        await make_user("bob")
        await make_friendship("alice", "bob", status="pending")

        with pytest.raises(AuthorizationError, match="You can only bet with friends"):
            await _create(db_session, alice)

    @pytest.mark.asyncio
    async def test_friendship_direction_does_not_matter(self, db_session, make_user, make_friendship):
        await make_user("alice")
        bob = await make_user("bob")
        await make_friendship("alice", "bob")

        bet = await _create(db_session, bob, opponent_id="alice")
        assert bet.creator_id == "bob"

    @pytest.mark.asyncio
    async def test_cannot_bet_against_yourself(self, db_session, alice_and_bob):
        alice, _ = alice_and_bob
        with pytest.raises(ValidationError):
            await _create(db_session, alice, opponent_id="alice")

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, db_session, alice_and_bob):
        alice, _ = alice_and_bob
        with pytest.raises(ValidationError, match="positive"):
            await _create(db_session, alice, amount="0")

    @pytest.mark.asyncio
    async def test_invitation_email_scheduled(self, db_session, alice_and_bob):
        alice, _ = alice_and_bob
        notifier = MagicMock(spec=BetNotifier)
        bet = await _create(db_session, alice, notifier=notifier)

        notifier.bet_invitation.assert_called_once()
        sent_bet, creator, opponent = notifier.bet_invitation.call_args.args
        assert sent_bet.id == bet.id
        assert creator.id == "alice"
        assert opponent.id == "bob"


class TestPendingTransitions:
    @pytest.mark.asyncio
    async def test_accept(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        notifier = MagicMock(spec=BetNotifier)

        accepted = await service.accept_bet(db_session, bet.id, bob, notifier=notifier)

        assert accepted.status == "active"
        assert accepted.accepted_at is not None
        notifier.bet_accepted.assert_called_once()

    @pytest.mark.asyncio
    async def test_accept_twice_is_rejected_without_side_effects(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        first = await service.accept_bet(db_session, bet.id, bob)
        accepted_at = first.accepted_at

        with pytest.raises(NotFoundError, match="Bet not found or already processed"):
            await service.accept_bet(db_session, bet.id, bob)

        again = await db_session.get(Bet, bet.id, populate_existing=True)
        assert again.status == "active"
        assert again.accepted_at == accepted_at

    @pytest.mark.asyncio
    async def test_creator_cannot_accept(self, db_session, alice_and_bob):
        alice, _ = alice_and_bob
        bet = await _create(db_session, alice)
        with pytest.raises(NotFoundError):
            await service.accept_bet(db_session, bet.id, alice)

    @pytest.mark.asyncio
    async def test_decline(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)

        declined = await service.decline_bet(db_session, bet.id, bob)
        assert declined.status == "declined"

        with pytest.raises(NotFoundError):
            await service.decline_bet(db_session, bet.id, bob)
        with pytest.raises(NotFoundError):
            await service.accept_bet(db_session, bet.id, bob)

    @pytest.mark.asyncio
    async def test_cancel_only_by_creator(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)

        with pytest.raises(NotFoundError):
            await service.cancel_bet(db_session, bet.id, bob)

        cancelled = await service.cancel_bet(db_session, bet.id, alice)
        assert cancelled.status == "expired"

    @pytest.mark.asyncio
    async def test_cannot_cancel_active_bet(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)
        with pytest.raises(NotFoundError):
            await service.cancel_bet(db_session, bet.id, alice)

    @pytest.mark.asyncio
    async def test_accept_ignores_passed_deadline(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        bet = await _create(db_session, alice, deadline=yesterday)
        assert get_display_status(bet.status, bet.deadline) == "deadline_passed"

        accepted = await service.accept_bet(db_session, bet.id, bob)
        assert accepted.status == "active"
        assert get_display_status(accepted.status, accepted.deadline) == "deadline_passed"


class TestApproval:
    @pytest.mark.asyncio
    async def test_end_to_end_resolution(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)

        bet, unlocked = await service.approve_bet_result(db_session, bet.id, alice, "alice")
        assert bet.status == "active"
        assert bet.creator_approved and not bet.opponent_approved
        assert unlocked == []

        bet, unlocked = await service.approve_bet_result(db_session, bet.id, bob, "alice")
        assert bet.status == "completed"
        assert bet.outcome == "win"
        assert bet.winner_id == "alice"
        assert bet.resolved_at is not None
        assert unlocked == ["first_bet", "first_friend_bet"]

        alice = await _user(db_session, "alice")
        bob = await _user(db_session, "bob")
        assert (alice.total_bets, alice.bets_won, alice.bets_lost) == (1, 1, 0)
        assert (bob.total_bets, bob.bets_won, bob.bets_lost) == (1, 0, 1)

        result = await db_session.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == "alice")
        )
        assert set(result.scalars()) == {"first_bet", "first_friend_bet"}

    @pytest.mark.asyncio
    async def test_opponent_win_records_loss_outcome(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)
        await service.approve_bet_result(db_session, bet.id, bob, "bob")
        bet, _ = await service.approve_bet_result(db_session, bet.id, alice, "bob")

        assert bet.outcome == "loss"
        assert bet.winner_id == "bob"

    @pytest.mark.asyncio
    async def test_one_sided_approval_notifies_other_party(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)
        notifier = MagicMock(spec=BetNotifier)

        await service.approve_bet_result(db_session, bet.id, alice, "alice", notifier=notifier)

        notifier.winner_confirmation.assert_called_once()
        _, declarer, recipient, winner = notifier.winner_confirmation.call_args.args
        assert (declarer.id, recipient.id, winner.id) == ("alice", "bob", "alice")

    @pytest.mark.asyncio
    async def test_invalid_winner(self, db_session, alice_and_bob, make_user):
        alice, bob = alice_and_bob
        await make_user("carol")
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)

        with pytest.raises(ValidationError, match="Invalid winner"):
            await service.approve_bet_result(db_session, bet.id, alice, "carol")

    @pytest.mark.asyncio
    async def test_outsider_cannot_vote(self, db_session, alice_and_bob, make_user):
        alice, bob = alice_and_bob
        carol = await make_user("carol")
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)

        with pytest.raises(NotFoundError, match="Bet not found or not active"):
            await service.approve_bet_result(db_session, bet.id, carol, "alice")

    @pytest.mark.asyncio
    async def test_pending_bet_cannot_be_approved(self, db_session, alice_and_bob):
        alice, _ = alice_and_bob
        bet = await _create(db_session, alice)
        with pytest.raises(NotFoundError):
            await service.approve_bet_result(db_session, bet.id, alice, "alice")

    @pytest.mark.asyncio
    async def test_completed_bet_rejects_further_votes(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)
        await service.approve_bet_result(db_session, bet.id, alice, "alice")
        await service.approve_bet_result(db_session, bet.id, bob, "alice")

        with pytest.raises(NotFoundError):
            await service.approve_bet_result(db_session, bet.id, bob, "bob")

        alice = await _user(db_session, "alice")
        assert alice.total_bets == 1

    @pytest.mark.asyncio
    async def test_resolve_is_applied_once(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        bet = await service.accept_bet(db_session, bet.id, bob)

        assert await service.resolve_bet(db_session, bet, "alice") is True
        bet = await db_session.get(Bet, bet.id)
        assert await service.resolve_bet(db_session, bet, "alice") is False

        alice = await _user(db_session, "alice")
        bob = await _user(db_session, "bob")
        assert (alice.total_bets, alice.bets_won) == (1, 1)
        assert (bob.total_bets, bob.bets_lost) == (1, 1)


class TestDisputes:
    @pytest.mark.asyncio
    async def test_disagreement_marks_disputed(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)

        await service.approve_bet_result(db_session, bet.id, alice, "alice")
        bet, unlocked = await service.approve_bet_result(db_session, bet.id, bob, "bob")

        assert bet.status == "disputed"
        assert bet.outcome == "disputed"
        assert bet.winner_id is None
        assert not bet.creator_approved and not bet.opponent_approved
        assert (bet.creator_winner_id, bet.opponent_winner_id) == ("alice", "bob")
        assert unlocked == []

        alice = await _user(db_session, "alice")
        assert alice.total_bets == 0

    @pytest.mark.asyncio
    async def test_revote_resolves_dispute(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)
        await service.approve_bet_result(db_session, bet.id, alice, "alice")
        await service.approve_bet_result(db_session, bet.id, bob, "bob")

        bet, _ = await service.approve_bet_result(db_session, bet.id, bob, "alice")
        assert bet.status == "disputed"
        assert bet.opponent_approved and not bet.creator_approved

        bet, _ = await service.approve_bet_result(db_session, bet.id, alice, "alice")
        assert bet.status == "completed"
        assert bet.winner_id == "alice"

    @pytest.mark.asyncio
    async def test_repeated_disagreement_stays_disputed(self, db_session, alice_and_bob):
        alice, bob = alice_and_bob
        bet = await _create(db_session, alice)
        await service.accept_bet(db_session, bet.id, bob)
        for _ in range(2):
            await service.approve_bet_result(db_session, bet.id, alice, "alice")
            bet, _ = await service.approve_bet_result(db_session, bet.id, bob, "bob")
            assert bet.status == "disputed"
            assert not (bet.creator_approved and bet.opponent_approved)


class TestReads:
    @pytest.mark.asyncio
    async def test_list_and_filter(self, db_session, alice_and_bob, make_bet):
        await make_bet("alice", "bob", status="pending")
        await make_bet("bob", "alice", status="active")
        await make_bet("alice", "bob", status="completed", winner_id="alice")

        all_bets = await service.list_user_bets(db_session, "alice")
        assert len(all_bets) == 3
        active = await service.list_user_bets(db_session, "alice", status="active")
        assert [b.status for b in active] == ["active"]
        page = await service.list_user_bets(db_session, "alice", limit=2, offset=2)
        assert len(page) == 1

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_status(self, db_session, alice_and_bob):
        with pytest.raises(ValidationError):
            await service.list_user_bets(db_session, "alice", status="deadline_passed")

    @pytest.mark.asyncio
    async def test_get_bet_hides_other_users_bets(self, db_session, alice_and_bob, make_user, make_bet):
        await make_user("carol")
        bet = await make_bet("alice", "bob")

        assert (await service.get_bet(db_session, bet.id, "bob")).id == bet.id
        with pytest.raises(NotFoundError):
            await service.get_bet(db_session, bet.id, "carol")

    @pytest.mark.asyncio
    async def test_invites_and_active_count(self, db_session, alice_and_bob, make_bet):
        await make_bet("alice", "bob", status="pending")
        await make_bet("bob", "alice", status="pending")
        await make_bet("alice", "bob", status="active")

        invites = await service.list_pending_invites(db_session, "bob")
        assert [b.creator_id for b in invites] == ["alice"]
        assert await service.count_active_bets(db_session, "alice") == 1
        assert await service.count_active_bets(db_session, "bob") == 1

    @pytest.mark.asyncio
    async def test_amounts_owed_summary(self, db_session, alice_and_bob, make_user, make_friendship, make_bet):
        await make_user("carol")
        await make_bet("alice", "bob", amount="30", status="completed", winner_id="alice")
        await make_bet("bob", "alice", amount="10", status="completed", winner_id="bob")
        await make_bet("carol", "alice", amount="100", status="completed", winner_id="carol")
        await make_bet("alice", "bob", amount="999", status="active")

        summary = await service.get_amounts_owed_summary(db_session, "alice")

        assert summary["total_won"] == Decimal("30")
        assert summary["total_lost"] == Decimal("110")
        assert summary["net_balance"] == Decimal("-80")
        balances = [(item["friend"].id, item["amount"]) for item in summary["friend_balances"]]
        assert balances == [("carol", Decimal("-100")), ("bob", Decimal("20"))]
