"""Achievement engine — evaluates catalog rules against a user's bet history.

Milestone and social-breadth rules depend only on cumulative data and run on
every evaluation. Streak, comeback and perfect-month rules look at recent
results and only run right after a win, as does high roller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.achievements.catalog import (
    COMEBACK,
    FIRST_FRIEND_BET,
    HIGH_ROLLER,
    PERFECT_MONTH,
    SOCIAL_BREADTH,
    STREAK_THRESHOLDS,
    TOTAL_BETS_THRESHOLDS,
    WINS_THRESHOLDS,
)
from ibetu.achievements.service import try_award
from ibetu.bets.lifecycle import COMPLETED
from ibetu.config import Settings, get_settings
from ibetu.db.models import Bet, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AchievementContext:
    """What just happened to the user being evaluated."""

    just_won: bool = False
    bet_amount: Decimal | None = None
    opponent_id: str | None = None


# ── Pure rule helpers ──


def compute_win_streak(winner_ids: Iterable[str | None], user_id: str) -> int:
    """Consecutive wins from the most recent result backwards (input is newest first)."""
    streak = 0
    for winner_id in winner_ids:
        if winner_id != user_id:
            break
        streak += 1
    return streak


def is_comeback(winner_ids: Sequence[str | None], user_id: str, window: int = 4) -> bool:
    """Latest result is a win and the ``window - 1`` before it are all losses."""
    if len(winner_ids) < window:
        return False
    latest, *previous = winner_ids[:window]
    return latest == user_id and all(w != user_id for w in previous)


def count_distinct_opponents(pairs: Iterable[tuple[str, str]], user_id: str) -> int:
    """Distinct counterparts across (creator_id, opponent_id) pairs."""
    return len({opponent if creator == user_id else creator for creator, opponent in pairs})


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """First and last instant of ``now``'s calendar month (both inclusive)."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(microseconds=1)


def is_perfect_month(winner_ids: Sequence[str | None], user_id: str, min_bets: int = 5) -> bool:
    return len(winner_ids) >= min_bets and all(w == user_id for w in winner_ids)


# ── Engine ──


class AchievementEngine:
    """Evaluates achievement rules for one user and grants first-time unlocks."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    def _completed_for(self, user_id: str):
        return select(Bet).where(
            or_(Bet.creator_id == user_id, Bet.opponent_id == user_id),
            Bet.status == COMPLETED,
        )

    async def _recent_winner_ids(self, user_id: str, limit: int) -> list[str | None]:
        """Winner ids of the user's latest completed bets, newest first."""
        stmt = (
            self._completed_for(user_id)
            .with_only_columns(Bet.winner_id)
            .order_by(Bet.resolved_at.desc(), Bet.id.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def _load_user(self, user_id: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def check_and_award(self, user_id: str, context: AchievementContext | None = None) -> list[str]:
        """Evaluate all applicable rules.

        Returns the ids unlocked by this call (already-held ones never reappear).
        """
        user = await self._load_user(user_id)
        if user is None:
            return []

        awarded: list[str] = []
        # Read counters up front; a rolled-back duplicate grant expires the row.
        await self._check_milestones(user_id, user.total_bets, user.bets_won, awarded)
        await self._check_social_breadth(user_id, awarded)

        if context is not None and context.just_won:
            await self._check_streaks(user_id, awarded)
            await self._check_comeback(user_id, awarded)
            await self._check_perfect_month(user_id, awarded)
            if context.bet_amount is not None:
                await self._check_high_roller(user_id, context.bet_amount, awarded)

        if awarded:
            logger.info("Achievements unlocked for %s: %s", user_id, ", ".join(awarded))
        return awarded

    async def _check_milestones(self, user_id: str, total_bets: int, bets_won: int, awarded: list[str]) -> None:
        for threshold in TOTAL_BETS_THRESHOLDS:
            if total_bets >= threshold.count:
                await try_award(self.db, user_id, threshold.id, awarded)

        for threshold in WINS_THRESHOLDS:
            if bets_won >= threshold.count:
                await try_award(self.db, user_id, threshold.id, awarded)

        # Every bet is with a friend, so the first completed bet qualifies.
        if total_bets >= 1:
            await try_award(self.db, user_id, FIRST_FRIEND_BET, awarded)

    async def _check_social_breadth(self, user_id: str, awarded: list[str]) -> None:
        result = await self.db.execute(
            self._completed_for(user_id).with_only_columns(Bet.creator_id, Bet.opponent_id)
        )
        pairs = [(row.creator_id, row.opponent_id) for row in result]
        if count_distinct_opponents(pairs, user_id) >= self.settings.social_breadth_min_opponents:
            await try_award(self.db, user_id, SOCIAL_BREADTH, awarded)

    async def _check_streaks(self, user_id: str, awarded: list[str]) -> None:
        winner_ids = await self._recent_winner_ids(user_id, self.settings.streak_window)
        if not winner_ids:
            return
        streak = compute_win_streak(winner_ids, user_id)
        for threshold in STREAK_THRESHOLDS:
            if streak >= threshold.count:
                await try_award(self.db, user_id, threshold.id, awarded)

    async def _check_comeback(self, user_id: str, awarded: list[str]) -> None:
        window = self.settings.comeback_window
        winner_ids = await self._recent_winner_ids(user_id, window)
        if is_comeback(winner_ids, user_id, window):
            await try_award(self.db, user_id, COMEBACK, awarded)

    async def _check_perfect_month(self, user_id: str, awarded: list[str], now: datetime | None = None) -> None:
        start, end = month_bounds(now or datetime.now(timezone.utc))
        result = await self.db.execute(
            self._completed_for(user_id)
            .with_only_columns(Bet.winner_id)
            .where(Bet.resolved_at >= start, Bet.resolved_at <= end)
        )
        winner_ids = list(result.scalars())
        if is_perfect_month(winner_ids, user_id, self.settings.perfect_month_min_bets):
            await try_award(self.db, user_id, PERFECT_MONTH, awarded)

    async def _check_high_roller(self, user_id: str, amount: Decimal, awarded: list[str]) -> None:
        if Decimal(str(amount)) >= Decimal(self.settings.high_roller_amount):
            await try_award(self.db, user_id, HIGH_ROLLER, awarded)


async def check_and_award_achievements(
    db: AsyncSession,
    user_id: str,
    context: AchievementContext | None = None,
) -> list[str]:
    """Module-level entry point used by the bet lifecycle and the API."""
    return await AchievementEngine(db).check_and_award(user_id, context)
