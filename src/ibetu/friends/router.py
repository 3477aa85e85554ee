"""Friendship router — /api/v1/friends/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.auth.dependencies import get_current_user
from ibetu.database import get_session
from ibetu.db.models import Friendship, User
from ibetu.friends import service
from ibetu.friends.schemas import (
    CountResponse,
    FriendEntry,
    FriendRequestCreate,
    FriendshipResponse,
    FriendshipStatusResponse,
)
from ibetu.schemas import Envelope, SuccessEnvelope
from ibetu.users.schemas import UserSummary

router = APIRouter(prefix="/api/v1/friends", tags=["Friends"])


def _friendship_response(f: Friendship) -> FriendshipResponse:
    return FriendshipResponse(
        id=f.id,
        user_id=f.user_id,
        friend_id=f.friend_id,
        status=f.status,
        added_via=f.added_via,
        created_at=f.created_at,
    )


def _entries(rows: list[tuple[Friendship, User]]) -> list[FriendEntry]:
    return [
        FriendEntry(
            friendship_id=f.id,
            status=f.status,
            added_via=f.added_via,
            created_at=f.created_at,
            user=UserSummary.model_validate(other),
        )
        for f, other in rows
    ]


# ── Listings ──


@router.get("", response_model=Envelope[list[FriendEntry]])
async def list_friends(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    """Accepted friends."""
    return Envelope(data=_entries(await service.list_friends(db, user.id)))


@router.get("/count", response_model=Envelope[CountResponse])
async def count_friends(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    return Envelope(data=CountResponse(count=await service.count_friends(db, user.id)))


@router.get("/requests", response_model=Envelope[list[FriendEntry]])
async def list_received_requests(
    user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session),
):
    """Pending requests addressed to the caller."""
    return Envelope(data=_entries(await service.list_pending_requests(db, user.id)))


@router.get("/requests/sent", response_model=Envelope[list[FriendEntry]])
async def list_sent_requests(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    return Envelope(data=_entries(await service.list_sent_requests(db, user.id)))


# ── Requests ──


@router.post("/requests", response_model=Envelope[FriendshipResponse])
async def send_request(
    body: FriendRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    friendship = await service.send_friend_request(db, user, body.friend_id, body.added_via)
    return Envelope(data=_friendship_response(friendship))


@router.post("/requests/{friendship_id}/accept", response_model=Envelope[FriendshipResponse])
async def accept_request(
    friendship_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    friendship = await service.accept_friend_request(db, friendship_id, user)
    return Envelope(data=_friendship_response(friendship))


@router.post("/requests/{friendship_id}/decline", response_model=Envelope[FriendshipResponse])
async def decline_request(
    friendship_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    friendship = await service.decline_friend_request(db, friendship_id, user)
    return Envelope(data=_friendship_response(friendship))


@router.post("/invite/{username}", response_model=Envelope[FriendshipResponse])
async def accept_invite_link(
    username: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Follow a friend's invite link; the friendship is accepted immediately."""
    friendship = await service.add_friend_via_invite(db, user, username)
    return Envelope(data=_friendship_response(friendship))


# ── Per-friend ──


@router.get("/{user_id}/status", response_model=Envelope[FriendshipStatusResponse])
async def friendship_status(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    is_friend, status = await service.get_friendship_status(db, user.id, user_id)
    return Envelope(data=FriendshipStatusResponse(is_friend=is_friend, status=status))


@router.delete("/{user_id}", response_model=SuccessEnvelope)
async def remove_friend(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await service.remove_friend(db, user, user_id)
    return SuccessEnvelope(success=True)
