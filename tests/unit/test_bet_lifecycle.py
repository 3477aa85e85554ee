"""Bet state machine and display-status projection."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from ibetu.bets.lifecycle import (
    ACTIVE,
    COMPLETED,
    DEADLINE_PASSED,
    DECLINED,
    DISPUTED,
    EXPIRED,
    PENDING,
    VALID_TRANSITIONS,
    as_utc,
    both_approved,
    get_display_status,
    other_party,
    outcome_for,
    validate_transition,
    votes_agree,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
YESTERDAY = NOW - timedelta(days=1)
TOMORROW = NOW + timedelta(days=1)


def _bet(**fields):
    defaults = {
        "id": 1,
        "creator_id": "alice",
        "opponent_id": "bob",
        "creator_approved": False,
        "opponent_approved": False,
        "creator_winner_id": None,
        "opponent_winner_id": None,
    }
    return SimpleNamespace(**{**defaults, **fields})


class TestTransitions:
    """Only forward moves along the state machine are allowed."""

    @pytest.mark.parametrize("target", [ACTIVE, DECLINED, EXPIRED])
    def test_pending_moves_forward(self, target):
        validate_transition(PENDING, target)

    def test_active_completes_or_disputes(self):
        validate_transition(ACTIVE, COMPLETED)
        validate_transition(ACTIVE, DISPUTED)

    def test_disputed_can_still_complete(self):
        validate_transition(DISPUTED, COMPLETED)

    @pytest.mark.parametrize("terminal", [COMPLETED, DECLINED, EXPIRED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert VALID_TRANSITIONS[terminal] == []
        with pytest.raises(ValueError, match="Invalid transition"):
            validate_transition(terminal, ACTIVE)

    def test_cannot_move_backwards(self):
        with pytest.raises(ValueError):
            validate_transition(ACTIVE, PENDING)

    def test_cannot_skip_acceptance(self):
        with pytest.raises(ValueError):
            validate_transition(PENDING, COMPLETED)

    def test_deadline_passed_is_never_a_target(self):
        for targets in VALID_TRANSITIONS.values():
            assert DEADLINE_PASSED not in targets


class TestDisplayStatus:
    @pytest.mark.parametrize("status", [PENDING, ACTIVE])
    def test_open_bet_past_deadline(self, status):
        assert get_display_status(status, YESTERDAY, NOW) == DEADLINE_PASSED

    @pytest.mark.parametrize("status", [PENDING, ACTIVE])
    def test_open_bet_before_deadline(self, status):
        assert get_display_status(status, TOMORROW, NOW) == status

    @pytest.mark.parametrize("status", [COMPLETED, DECLINED, EXPIRED, DISPUTED])
    def test_closed_bets_keep_their_status(self, status):
        assert get_display_status(status, YESTERDAY, NOW) == status

    def test_deadline_equal_to_now_is_not_passed(self):
        assert get_display_status(PENDING, NOW, NOW) == PENDING

    def test_is_pure(self):
        results = {get_display_status(ACTIVE, YESTERDAY, NOW) for _ in range(5)}
        assert results == {DEADLINE_PASSED}

    def test_naive_deadline_treated_as_utc(self):
        naive = YESTERDAY.replace(tzinfo=None)
        assert get_display_status(PENDING, naive, NOW) == DEADLINE_PASSED
        assert as_utc(naive).tzinfo is timezone.utc


class TestParties:
    def test_other_party_for_each_side(self):
        bet = _bet()
        assert other_party(bet, "alice") == "bob"
        assert other_party(bet, "bob") == "alice"

    def test_other_party_rejects_outsiders(self):
        with pytest.raises(ValueError):
            other_party(_bet(), "carol")

    def test_outcome_from_creator_point_of_view(self):
        bet = _bet()
        assert outcome_for(bet, "alice") == "win"
        assert outcome_for(bet, "bob") == "loss"


class TestVotes:
    def test_both_approved(self):
        assert not both_approved(_bet(creator_approved=True))
        assert both_approved(_bet(creator_approved=True, opponent_approved=True))

    def test_votes_agree_requires_a_vote(self):
        assert not votes_agree(_bet())
        assert votes_agree(_bet(creator_winner_id="bob", opponent_winner_id="bob"))
        assert not votes_agree(_bet(creator_winner_id="alice", opponent_winner_id="bob"))
