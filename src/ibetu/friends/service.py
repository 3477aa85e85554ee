"""Friendship business logic.

Rules:
- One friendship row per unordered pair (``pair_key`` is UNIQUE)
- Requests start pending; only the recipient accepts or declines
- Invite links create the edge directly as accepted
- Removing a friend deletes the row whichever side created it
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.auth.service import get_user_by_id, get_user_by_username
from ibetu.db.models import Friendship, User, make_pair_key
from ibetu.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"

ADDED_VIA = ("qr", "phone", "nickname")


def _pair_filter(a: str, b: str):
    return or_(
        and_(Friendship.user_id == a, Friendship.friend_id == b),
        and_(Friendship.user_id == b, Friendship.friend_id == a),
    )


def _involving(user_id: str):
    return or_(Friendship.user_id == user_id, Friendship.friend_id == user_id)


async def get_friendship_between(db: AsyncSession, a: str, b: str) -> Friendship | None:
    """The friendship row for the unordered pair {a, b}, in any status."""
    result = await db.execute(select(Friendship).where(_pair_filter(a, b)))
    return result.scalars().first()


async def are_friends(db: AsyncSession, a: str, b: str) -> bool:
    """True when an accepted friendship exists between the two users."""
    result = await db.execute(
        select(Friendship.id).where(_pair_filter(a, b), Friendship.status == ACCEPTED)
    )
    return result.first() is not None


async def send_friend_request(
    db: AsyncSession,
    user: User,
    friend_id: str,
    added_via: str = "nickname",
) -> Friendship:
    """Create a pending request from ``user`` to ``friend_id``."""
    if friend_id == user.id:
        raise ValidationError("Cannot add yourself as a friend")
    if added_via not in ADDED_VIA:
        raise ValidationError(f"added_via must be one of {', '.join(ADDED_VIA)}")
    if await get_user_by_id(db, friend_id) is None:
        raise NotFoundError("User not found")

    now = datetime.now(timezone.utc)
    existing = await get_friendship_between(db, user.id, friend_id)
    if existing is not None:
        if existing.status == ACCEPTED:
            raise ValidationError("Already friends")
        if existing.status == PENDING:
            raise ValidationError("Friend request already pending")
        # A declined edge is reopened as a fresh request from the caller.
        existing.user_id = user.id
        existing.friend_id = friend_id
        existing.status = PENDING
        existing.added_via = added_via
        existing.created_at = now
        await db.commit()
        return existing

    friendship = Friendship(
        user_id=user.id,
        friend_id=friend_id,
        pair_key=make_pair_key(user.id, friend_id),
        status=PENDING,
        added_via=added_via,
        created_at=now,
    )
    db.add(friendship)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ValidationError("Friend request already pending") from e

    logger.info("Friend request %d: %s -> %s (%s)", friendship.id, user.id, friend_id, added_via)
    return friendship


async def _respond(db: AsyncSession, friendship_id: int, recipient_id: str, status: str) -> Friendship:
    result = await db.execute(
        select(Friendship).where(
            Friendship.id == friendship_id,
            Friendship.friend_id == recipient_id,
            Friendship.status == PENDING,
        )
    )
    friendship = result.scalar_one_or_none()
    if friendship is None:
        raise NotFoundError("Friend request not found or already processed")
    friendship.status = status
    await db.commit()
    return friendship


async def accept_friend_request(db: AsyncSession, friendship_id: int, user: User) -> Friendship:
    """Accept a pending request addressed to ``user``."""
    friendship = await _respond(db, friendship_id, user.id, ACCEPTED)
    logger.info("Friend request %d accepted by %s", friendship_id, user.id)
    return friendship


async def decline_friend_request(db: AsyncSession, friendship_id: int, user: User) -> Friendship:
    """Decline a pending request addressed to ``user``."""
    return await _respond(db, friendship_id, user.id, DECLINED)


async def add_friend_via_invite(db: AsyncSession, user: User, inviter_username: str) -> Friendship:
    """Invite-link flow: following a friend's link is mutual consent, so the edge is accepted at once."""
    inviter = await get_user_by_username(db, inviter_username)
    if inviter is None:
        raise NotFoundError("User not found")
    if inviter.id == user.id:
        raise ValidationError("Cannot add yourself as a friend")

    existing = await get_friendship_between(db, user.id, inviter.id)
    if existing is not None:
        if existing.status != ACCEPTED:
            existing.status = ACCEPTED
            await db.commit()
        return existing

    friendship = Friendship(
        user_id=inviter.id,
        friend_id=user.id,
        pair_key=make_pair_key(inviter.id, user.id),
        status=ACCEPTED,
        added_via="qr",
        created_at=datetime.now(timezone.utc),
    )
    db.add(friendship)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_friendship_between(db, user.id, inviter.id)
        if existing is None:
            raise
        return existing
    return friendship


async def remove_friend(db: AsyncSession, user: User, friend_id: str) -> None:
    """Delete the friendship row in either direction."""
    await db.execute(delete(Friendship).where(_pair_filter(user.id, friend_id)))
    await db.commit()


async def list_friends(db: AsyncSession, user_id: str) -> list[tuple[Friendship, User]]:
    """Accepted friendships, each paired with the other user's row."""
    result = await db.execute(
        select(Friendship, User)
        .join(
            User,
            or_(
                and_(Friendship.user_id == user_id, User.id == Friendship.friend_id),
                and_(Friendship.friend_id == user_id, User.id == Friendship.user_id),
            ),
        )
        .where(_involving(user_id), Friendship.status == ACCEPTED)
        .order_by(Friendship.created_at.desc())
    )
    return [(row.Friendship, row.User) for row in result]


async def list_pending_requests(db: AsyncSession, user_id: str) -> list[tuple[Friendship, User]]:
    """Requests received by ``user_id``, paired with the requester."""
    result = await db.execute(
        select(Friendship, User)
        .join(User, User.id == Friendship.user_id)
        .where(Friendship.friend_id == user_id, Friendship.status == PENDING)
        .order_by(Friendship.created_at.desc())
    )
    return [(row.Friendship, row.User) for row in result]


async def list_sent_requests(db: AsyncSession, user_id: str) -> list[tuple[Friendship, User]]:
    """Requests sent by ``user_id``, paired with the recipient."""
    result = await db.execute(
        select(Friendship, User)
        .join(User, User.id == Friendship.friend_id)
        .where(Friendship.user_id == user_id, Friendship.status == PENDING)
        .order_by(Friendship.created_at.desc())
    )
    return [(row.Friendship, row.User) for row in result]


async def get_friendship_status(db: AsyncSession, user_id: str, other_id: str) -> tuple[bool, str | None]:
    """(is_friend, status or None when no row exists)."""
    friendship = await get_friendship_between(db, user_id, other_id)
    if friendship is None:
        return False, None
    return friendship.status == ACCEPTED, friendship.status


async def count_friends(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Friendship)
        .where(_involving(user_id), Friendship.status == ACCEPTED)
    )
    return result.scalar_one()
