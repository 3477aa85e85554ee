"""
Caller provisioning.

Users are created on first authentication from the provider's token claims.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ibetu.db.models import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

CREATE_ATTEMPTS = 3


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Fetch a user by username (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.username) == username.lower()))
    return result.scalar_one_or_none()


def email_local_part(email: str) -> str:
    return email.split("@")[0] if email else ""


def generate_username(email: str, user_id: str) -> str:
    """``<email local part>_<last four chars of the id>``."""
    local = email_local_part(email) or "user"
    return f"{local}_{user_id[-4:]}"


def username_candidates(preferred: str, user_id: str) -> Iterator[str]:
    """``preferred``, then ``preferred_<id suffix>``, then numbered variants of that."""
    yield preferred
    base = f"{preferred}_{user_id[-4:]}"
    yield base
    for n in itertools.count(2):
        yield f"{base}{n}"


async def _unique_username(db: AsyncSession, preferred: str, user_id: str) -> str:
    """First candidate no other user holds, compared case-insensitively."""
    for candidate in username_candidates(preferred, user_id):
        if await get_user_by_username(db, candidate) is None:
            return candidate
    raise AssertionError("unreachable")


async def get_or_create_user(db: AsyncSession, claims: dict[str, Any]) -> tuple[User, bool]:
    """
    Get the user for a verified token, creating the row on first sight.

    A username collision with a concurrent signup is retried with the next
    free candidate.

    Returns:
        Tuple of (user, created) where created is True if a new user was made.
    """
    user_id: str = claims["sub"]
    user = await get_user_by_id(db, user_id)
    if user is not None:
        return user, False

    email = str(claims.get("email") or "")
    display_name = str(claims.get("name") or "").strip() or email_local_part(email) or "Player"
    preferred = str(claims.get("username") or "").strip() or generate_username(email, user_id)

    for attempt in range(1, CREATE_ATTEMPTS + 1):
        now = datetime.now(timezone.utc)
        user = User(
            id=user_id,
            username=await _unique_username(db, preferred, user_id),
            display_name=display_name,
            email=email,
            avatar_url=claims.get("picture"),
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            # Same id created concurrently: use that row.
            existing = await get_user_by_id(db, user_id)
            if existing is not None:
                return existing, False
            if attempt == CREATE_ATTEMPTS:
                raise
            logger.warning("username_conflict_retry", user_id=user_id, attempt=attempt)
            continue

        logger.info("user_created", user_id=user_id, username=user.username)
        return user, True

    raise AssertionError("unreachable")
