"""Leaderboard and social stats endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.auth.dependencies import get_current_user
from ibetu.bets.schemas import bet_response
from ibetu.bets.service import load_users
from ibetu.config import get_settings
from ibetu.database import get_session
from ibetu.db.models import User
from ibetu.schemas import Envelope
from ibetu.social import friend_stats_service
from ibetu.social.leaderboard_service import get_leaderboard, get_user_rank
from ibetu.social.schemas import (
    BetHistoryResponse,
    ComparedUser,
    FriendComparisonResponse,
    HeadToHead,
    HistoryStats,
    LeaderboardEntry,
    TopFriendEntry,
    UserRankResponse,
)
from ibetu.users.schemas import UserSummary

router = APIRouter(prefix="/api/v1", tags=["Social"])


# ── Leaderboard ──


@router.get("/leaderboard", response_model=Envelope[list[LeaderboardEntry]])
async def leaderboard(
    limit: int | None = Query(None, ge=1, le=200),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All-time leaderboard ordered by wins."""
    entries = await get_leaderboard(db, limit or get_settings().leaderboard_default_limit)
    return Envelope(data=[
        LeaderboardEntry(**{**e, "user": UserSummary.model_validate(e["user"])}) for e in entries
    ])


@router.get("/leaderboard/me", response_model=Envelope[UserRankResponse])
async def my_rank(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    rank, total = await get_user_rank(db, user.id)
    return Envelope(data=UserRankResponse(rank=rank, total_players=total))


# ── Friends ──


@router.get("/social/friends/{friend_id}/history", response_model=Envelope[BetHistoryResponse])
async def bet_history(
    friend_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    bets, stats = await friend_stats_service.get_bet_history_with_friend(
        db, user.id, friend_id, limit=limit, offset=offset,
    )
    users = await load_users(db, {user.id, friend_id})
    return Envelope(data=BetHistoryResponse(
        bets=[bet_response(b, users) for b in bets],
        stats=HistoryStats(**stats),
    ))


@router.get("/social/friends/{friend_id}/comparison", response_model=Envelope[FriendComparisonResponse])
async def friend_comparison(
    friend_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    data = await friend_stats_service.get_friend_comparison(db, user.id, friend_id)

    def _compared(stats: dict) -> ComparedUser:
        return ComparedUser(**{**stats, "user": UserSummary.model_validate(stats["user"])})

    return Envelope(data=FriendComparisonResponse(
        current_user=_compared(data["current_user"]),
        friend=_compared(data["friend"]),
        head_to_head=HeadToHead(**data["head_to_head"]),
    ))


@router.get("/social/top-friends", response_model=Envelope[list[TopFriendEntry]])
async def top_friends(
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    entries = await friend_stats_service.get_top_betting_friends(db, user.id, limit=limit)
    return Envelope(data=[
        TopFriendEntry(
            user_id=e["user_id"],
            user=UserSummary.model_validate(e["user"]) if e["user"] else None,
            total_bets=e["total_bets"],
            wins_against=e["wins_against"],
        )
        for e in entries
    ])
