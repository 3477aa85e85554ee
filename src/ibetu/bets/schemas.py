"""Request/response schemas for bet endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from ibetu.bets.lifecycle import as_utc, get_display_status
from ibetu.db.models import Bet, User
from ibetu.users.schemas import UserSummary

VerificationMethod = Literal["mutual_agreement", "third_party", "photo_proof", "honor_system"]


class BetCreateRequest(BaseModel):
    opponent_id: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    deadline: datetime
    verification_method: VerificationMethod = "mutual_agreement"


class ApproveRequest(BaseModel):
    winner_id: str = Field(..., min_length=1, max_length=64)


class BetResponse(BaseModel):
    id: int
    title: str
    description: str
    amount: Decimal
    creator_id: str
    opponent_id: str
    status: str
    display_status: str
    outcome: str
    winner_id: str | None = None
    creator_winner_id: str | None = None
    opponent_winner_id: str | None = None
    verification_method: str
    deadline: datetime
    creator_approved: bool
    opponent_approved: bool
    created_at: datetime
    accepted_at: datetime | None = None
    resolved_at: datetime | None = None
    creator: UserSummary | None = None
    opponent: UserSummary | None = None


class ApproveResponse(BaseModel):
    bet: BetResponse
    new_achievements: list[str] = []


class ActiveCountResponse(BaseModel):
    count: int


class FriendBalance(BaseModel):
    """Positive ``amount``: the friend owes the caller."""

    friend: UserSummary | None = None
    amount: Decimal


class AmountsOwedResponse(BaseModel):
    total_won: Decimal
    total_lost: Decimal
    net_balance: Decimal
    friend_balances: list[FriendBalance]


def _summary(user: User | None) -> UserSummary | None:
    return UserSummary.model_validate(user) if user is not None else None


def bet_response(bet: Bet, users: dict[str, User] | None = None, now: datetime | None = None) -> BetResponse:
    """Serialize a bet with its read-time display status and participant summaries."""
    users = users or {}
    return BetResponse(
        id=bet.id,
        title=bet.title,
        description=bet.description,
        amount=bet.amount,
        creator_id=bet.creator_id,
        opponent_id=bet.opponent_id,
        status=bet.status,
        display_status=get_display_status(bet.status, bet.deadline, now),
        outcome=bet.outcome,
        winner_id=bet.winner_id,
        creator_winner_id=bet.creator_winner_id,
        opponent_winner_id=bet.opponent_winner_id,
        verification_method=bet.verification_method,
        deadline=as_utc(bet.deadline),
        creator_approved=bet.creator_approved,
        opponent_approved=bet.opponent_approved,
        created_at=as_utc(bet.created_at),
        accepted_at=as_utc(bet.accepted_at) if bet.accepted_at else None,
        resolved_at=as_utc(bet.resolved_at) if bet.resolved_at else None,
        creator=_summary(users.get(bet.creator_id)),
        opponent=_summary(users.get(bet.opponent_id)),
    )
