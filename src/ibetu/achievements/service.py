"""Achievement unlock storage with duplicate prevention."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.achievements.catalog import Achievement, get_achievement
from ibetu.db.models import UserAchievement

logger = logging.getLogger(__name__)


async def has_achievement(db: AsyncSession, user_id: str, achievement_id: str) -> bool:
    """Check if user already holds a specific achievement."""
    result = await db.execute(
        select(UserAchievement.id).where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
        )
    )
    return result.first() is not None


async def award_achievement(db: AsyncSession, user_id: str, achievement_id: str) -> bool:
    """Grant an achievement.

    Returns True if newly unlocked, False if already held or unknown.
    The existence check avoids needless inserts; the UNIQUE(user_id,
    achievement_id) constraint decides when two requests race.
    """
    if get_achievement(achievement_id) is None:
        logger.warning("Achievement not found: %s", achievement_id)
        return False

    if await has_achievement(db, user_id, achievement_id):
        return False

    db.add(UserAchievement(
        user_id=user_id,
        achievement_id=achievement_id,
        unlocked_at=datetime.now(timezone.utc),
    ))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False  # Race condition: already unlocked

    logger.info("Achievement unlocked: %s -> %s", achievement_id, user_id)
    return True


async def try_award(db: AsyncSession, user_id: str, achievement_id: str, awarded: list[str]) -> None:
    """Award and, when new, append to ``awarded``."""
    if await award_achievement(db, user_id, achievement_id):
        awarded.append(achievement_id)


async def list_user_achievements(
    db: AsyncSession, user_id: str,
) -> list[tuple[UserAchievement, Achievement | None]]:
    """A user's unlocks, newest first, joined with catalog data."""
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.unlocked_at.desc(), UserAchievement.id.desc())
    )
    return [(ua, get_achievement(ua.achievement_id)) for ua in result.scalars()]
