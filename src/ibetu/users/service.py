"""User profile business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select

from ibetu.auth.service import get_user_by_id, get_user_by_username
from ibetu.db.models import User
from ibetu.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def win_rate(won: int, total: int) -> int:
    """Whole-number percentage; 0 when no bets are completed."""
    if total <= 0:
        return 0
    return round(won / total * 100)


async def get_profile(db: AsyncSession, user_id: str) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_profile_by_username(db: AsyncSession, username: str) -> User:
    user = await get_user_by_username(db, username)
    if user is None:
        raise NotFoundError("User not found")
    return user


def escape_like(term: str) -> str:
    """Escape ``%``, ``_`` and the escape character itself for a LIKE pattern."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def search_users(db: AsyncSession, query: str, exclude_id: str, limit: int = 10) -> list[User]:
    """Case-insensitive substring match on username or display name."""
    term = query.strip().lower()
    if not term:
        return []
    pattern = f"%{escape_like(term)}%"
    result = await db.execute(
        select(User)
        .where(
            or_(
                func.lower(User.username).like(pattern, escape="\\"),
                func.lower(User.display_name).like(pattern, escape="\\"),
            ),
            User.id != exclude_id,
        )
        .order_by(User.username)
        .limit(limit)
    )
    return list(result.scalars())


async def is_username_available(db: AsyncSession, username: str, exclude_id: str | None = None) -> bool:
    existing = await get_user_by_username(db, username)
    return existing is None or existing.id == exclude_id


async def update_profile(
    db: AsyncSession,
    user: User,
    display_name: str | None = None,
    username: str | None = None,
    avatar_url: str | None = None,
    email_notifications_enabled: bool | None = None,
) -> User:
    """
    Update user profile fields.

    Raises:
        ValidationError: If the username is already taken (case-insensitive).
    """
    if username is not None and username != user.username:
        if not await is_username_available(db, username, exclude_id=user.id):
            raise ValidationError("Username already taken")
        user.username = username

    if display_name is not None:
        user.display_name = display_name
    if avatar_url is not None:
        user.avatar_url = avatar_url
    if email_notifications_enabled is not None:
        user.email_notifications_enabled = email_notifications_enabled

    await db.commit()
    logger.info("profile_updated", user_id=user.id)
    return user


async def get_user_stats(db: AsyncSession, user_id: str) -> dict[str, object]:
    """Cumulative bet counters plus win rate and the mock wallet balance."""
    user = await get_profile(db, user_id)
    return {
        "total_bets": user.total_bets,
        "bets_won": user.bets_won,
        "bets_lost": user.bets_lost,
        "win_rate": win_rate(user.bets_won, user.total_bets),
        "wallet_balance": user.wallet_balance,
    }
