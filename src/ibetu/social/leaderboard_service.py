"""Leaderboard service — ranks users by wins over the cumulative counters.

Only users with at least one completed bet are ranked. Ties keep a stable
order (fewer bets first, then username) so ranks do not shuffle between
requests.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from ibetu.db.models import User
from ibetu.users.service import win_rate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_RANK_ORDER = (User.bets_won.desc(), User.total_bets.asc(), User.username.asc())


async def get_leaderboard(db: AsyncSession, limit: int = 50) -> list[dict]:
    """Top ``limit`` users, ranked 1..n."""
    result = await db.execute(
        select(User).where(User.total_bets > 0).order_by(*_RANK_ORDER).limit(limit)
    )
    return [
        {
            "rank": index,
            "user": user,
            "wins": user.bets_won,
            "losses": user.bets_lost,
            "total_bets": user.total_bets,
            "win_rate": win_rate(user.bets_won, user.total_bets),
        }
        for index, user in enumerate(result.scalars(), start=1)
    ]


async def get_user_rank(db: AsyncSession, user_id: str) -> tuple[int | None, int]:
    """(rank or None when the user has no completed bets, total ranked players)."""
    total = (
        await db.execute(select(func.count()).select_from(User).where(User.total_bets > 0))
    ).scalar_one()

    result = await db.execute(select(User.id).where(User.total_bets > 0).order_by(*_RANK_ORDER))
    for index, ranked_id in enumerate(result.scalars(), start=1):
        if ranked_id == user_id:
            return index, total
    return None, total
