"""Bet state machine and read-time status projection.

Stored progression:
    pending  -> active | declined | expired
    active   -> completed | disputed
    disputed -> completed

completed, declined and expired are terminal. disputed only accepts re-votes.
``deadline_passed`` is never stored; it is projected at read time for
pending/active bets whose deadline is behind us.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ibetu.db.models import Bet

PENDING = "pending"
ACTIVE = "active"
COMPLETED = "completed"
DECLINED = "declined"
EXPIRED = "expired"
DISPUTED = "disputed"
DEADLINE_PASSED = "deadline_passed"

STORED_STATUSES = (PENDING, ACTIVE, COMPLETED, DECLINED, EXPIRED, DISPUTED)
OPEN_STATUSES = frozenset({PENDING, ACTIVE})
VOTING_STATUSES = frozenset({ACTIVE, DISPUTED})

VALID_TRANSITIONS: dict[str, list[str]] = {
    PENDING: [ACTIVE, DECLINED, EXPIRED],
    ACTIVE: [COMPLETED, DISPUTED],
    DISPUTED: [COMPLETED],
    COMPLETED: [],
    DECLINED: [],
    EXPIRED: [],
}

OUTCOME_PENDING = "pending"
OUTCOME_WIN = "win"
OUTCOME_LOSS = "loss"
OUTCOME_DISPUTED = "disputed"

VERIFICATION_METHODS = ("mutual_agreement", "third_party", "photo_proof", "honor_system")


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise ValueError(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_deadline_passed(deadline: datetime, now: datetime | None = None) -> bool:
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    return as_utc(deadline) < now


def get_display_status(status: str, deadline: datetime, now: datetime | None = None) -> str:
    """Status shown to clients.

    ``deadline_passed`` iff the bet is still pending/active and its deadline
    is earlier than ``now``; otherwise the stored status unchanged.
    """
    if status in OPEN_STATUSES and is_deadline_passed(deadline, now):
        return DEADLINE_PASSED
    return status


def other_party(bet: Bet, user_id: str) -> str:
    """The participant that is not ``user_id``."""
    if user_id == bet.creator_id:
        return bet.opponent_id
    if user_id == bet.opponent_id:
        return bet.creator_id
    raise ValueError(f"User {user_id} is not a participant of bet {bet.id}")


def outcome_for(bet: Bet, winner_id: str) -> str:
    """Outcome is recorded from the creator's point of view."""
    return OUTCOME_WIN if winner_id == bet.creator_id else OUTCOME_LOSS


def both_approved(bet: Bet) -> bool:
    return bool(bet.creator_approved and bet.opponent_approved)


def votes_agree(bet: Bet) -> bool:
    return bet.creator_winner_id is not None and bet.creator_winner_id == bet.opponent_winner_id
