"""Bet router — /api/v1/bets/* endpoints."""

from __future__ import annotations

from collections.abc import Sequence

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.auth.dependencies import get_current_user
from ibetu.bets import service
from ibetu.bets.notifier import BetNotifier, get_bet_notifier
from ibetu.bets.schemas import (
    ActiveCountResponse,
    AmountsOwedResponse,
    ApproveRequest,
    ApproveResponse,
    BetCreateRequest,
    BetResponse,
    FriendBalance,
    bet_response,
)
from ibetu.config import get_settings
from ibetu.database import get_session
from ibetu.db.models import Bet, User
from ibetu.schemas import Envelope
from ibetu.users.schemas import UserSummary

router = APIRouter(prefix="/api/v1/bets", tags=["Bets"])


async def _with_users(db: AsyncSession, bets: Sequence[Bet]) -> list[BetResponse]:
    ids = {b.creator_id for b in bets} | {b.opponent_id for b in bets}
    users = await service.load_users(db, ids)
    return [bet_response(b, users) for b in bets]


async def _one(db: AsyncSession, bet: Bet) -> BetResponse:
    return (await _with_users(db, [bet]))[0]


# ── Reads ──


@router.get("", response_model=Envelope[list[BetResponse]])
async def list_bets(
    status: str | None = Query(None),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's bets, newest first."""
    limit = min(limit, get_settings().bet_list_max_limit)
    bets = await service.list_user_bets(db, user.id, status=status, limit=limit, offset=offset)
    return Envelope(data=await _with_users(db, bets))


@router.get("/invites", response_model=Envelope[list[BetResponse]])
async def pending_invites(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    bets = await service.list_pending_invites(db, user.id)
    return Envelope(data=await _with_users(db, bets))


@router.get("/active-count", response_model=Envelope[ActiveCountResponse])
async def active_count(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    return Envelope(data=ActiveCountResponse(count=await service.count_active_bets(db, user.id)))


@router.get("/summary", response_model=Envelope[AmountsOwedResponse])
async def amounts_owed(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    """Money won, lost and owed per friend over completed bets."""
    summary = await service.get_amounts_owed_summary(db, user.id)
    return Envelope(data=AmountsOwedResponse(
        total_won=summary["total_won"],
        total_lost=summary["total_lost"],
        net_balance=summary["net_balance"],
        friend_balances=[
            FriendBalance(
                friend=UserSummary.model_validate(item["friend"]) if item["friend"] else None,
                amount=item["amount"],
            )
            for item in summary["friend_balances"]
        ],
    ))


@router.get("/{bet_id}", response_model=Envelope[BetResponse])
async def get_bet(bet_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    bet = await service.get_bet(db, bet_id, user.id)
    return Envelope(data=await _one(db, bet))


# ── Lifecycle ──


@router.post("", response_model=Envelope[BetResponse])
async def create_bet(
    body: BetCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: BetNotifier = Depends(get_bet_notifier),
):
    bet = await service.create_bet(
        db,
        user,
        opponent_id=body.opponent_id,
        title=body.title,
        description=body.description,
        amount=body.amount,
        deadline=body.deadline,
        verification_method=body.verification_method,
        notifier=notifier,
    )
    return Envelope(data=await _one(db, bet))


@router.post("/{bet_id}/accept", response_model=Envelope[BetResponse])
async def accept_bet(
    bet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: BetNotifier = Depends(get_bet_notifier),
):
    bet = await service.accept_bet(db, bet_id, user, notifier=notifier)
    return Envelope(data=await _one(db, bet))


@router.post("/{bet_id}/decline", response_model=Envelope[BetResponse])
async def decline_bet(bet_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    bet = await service.decline_bet(db, bet_id, user)
    return Envelope(data=await _one(db, bet))


@router.post("/{bet_id}/cancel", response_model=Envelope[BetResponse])
async def cancel_bet(bet_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    bet = await service.cancel_bet(db, bet_id, user)
    return Envelope(data=await _one(db, bet))


@router.post("/{bet_id}/approve", response_model=Envelope[ApproveResponse])
async def approve_result(
    bet_id: int,
    body: ApproveRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: BetNotifier = Depends(get_bet_notifier),
):
    """Vote for a winner; the matching second vote resolves the bet."""
    bet, unlocked = await service.approve_bet_result(db, bet_id, user, body.winner_id, notifier=notifier)
    return Envelope(data=ApproveResponse(bet=await _one(db, bet), new_achievements=unlocked))
