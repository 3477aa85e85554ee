"""Per-friend betting statistics: shared history, comparison, top opponents."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import and_, or_, select

from ibetu.bets.lifecycle import ACTIVE, COMPLETED, other_party
from ibetu.bets.service import load_users
from ibetu.db.models import Bet
from ibetu.errors import NotFoundError
from ibetu.users.service import win_rate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def _between(a: str, b: str):
    return or_(
        and_(Bet.creator_id == a, Bet.opponent_id == b),
        and_(Bet.creator_id == b, Bet.opponent_id == a),
    )


def history_stats(bets: Sequence[Bet], user_id: str, friend_id: str) -> dict[str, int]:
    completed = [b for b in bets if b.status == COMPLETED]
    return {
        "total_bets": len(bets),
        "completed_bets": len(completed),
        "user_wins": sum(1 for b in completed if b.winner_id == user_id),
        "friend_wins": sum(1 for b in completed if b.winner_id == friend_id),
        "active_bets": sum(1 for b in bets if b.status == ACTIVE),
    }


async def get_bet_history_with_friend(
    db: AsyncSession, user_id: str, friend_id: str, limit: int = 50, offset: int = 0,
) -> tuple[Sequence[Bet], dict[str, int]]:
    """Bets between the pair (newest first) and stats over the returned page."""
    result = await db.execute(
        select(Bet)
        .where(_between(user_id, friend_id))
        .order_by(Bet.created_at.desc(), Bet.id.desc())
        .limit(limit)
        .offset(offset)
    )
    bets = result.scalars().all()
    return bets, history_stats(bets, user_id, friend_id)


async def get_friend_comparison(db: AsyncSession, user_id: str, friend_id: str) -> dict[str, Any]:
    """Both users' cumulative stats and their head-to-head record."""
    users = await load_users(db, {user_id, friend_id})
    if user_id not in users or friend_id not in users or user_id == friend_id:
        raise NotFoundError("Users not found")

    result = await db.execute(
        select(Bet.winner_id).where(_between(user_id, friend_id), Bet.status == COMPLETED)
    )
    winners = list(result.scalars())

    def _stats(uid: str) -> dict[str, Any]:
        u = users[uid]
        return {
            "user": u,
            "total_bets": u.total_bets,
            "bets_won": u.bets_won,
            "bets_lost": u.bets_lost,
            "win_rate": win_rate(u.bets_won, u.total_bets),
        }

    return {
        "current_user": _stats(user_id),
        "friend": _stats(friend_id),
        "head_to_head": {
            "total_games": len(winners),
            "user_wins": winners.count(user_id),
            "friend_wins": winners.count(friend_id),
        },
    }


async def get_top_betting_friends(db: AsyncSession, user_id: str, limit: int = 5) -> list[dict[str, Any]]:
    """Opponents by number of bets together (any status), with wins against each."""
    result = await db.execute(
        select(Bet.creator_id, Bet.opponent_id, Bet.winner_id, Bet.status).where(
            or_(Bet.creator_id == user_id, Bet.opponent_id == user_id)
        )
    )
    counts: dict[str, dict[str, int]] = {}
    for row in result:
        opponent_id = other_party(row, user_id)
        entry = counts.setdefault(opponent_id, {"total": 0, "wins": 0})
        entry["total"] += 1
        if row.status == COMPLETED and row.winner_id == user_id:
            entry["wins"] += 1

    top = sorted(counts.items(), key=lambda item: item[1]["total"], reverse=True)[:limit]
    users = await load_users(db, {opponent_id for opponent_id, _ in top})
    return [
        {
            "user": users.get(opponent_id),
            "user_id": opponent_id,
            "total_bets": stats["total"],
            "wins_against": stats["wins"],
        }
        for opponent_id, stats in top
    ]
