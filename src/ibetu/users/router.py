"""User router — all /api/v1/users/* profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.auth.dependencies import get_current_user
from ibetu.database import get_session
from ibetu.db.models import User
from ibetu.schemas import Envelope
from ibetu.users import service
from ibetu.users.schemas import (
    ProfileUpdateRequest,
    PublicUserResponse,
    UsernameAvailability,
    UserResponse,
    UserStatsResponse,
    UserSummary,
)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=Envelope[UserResponse])
async def get_my_profile(user: User = Depends(get_current_user)):
    """Get own full profile (created on first authentication)."""
    return Envelope(data=UserResponse.model_validate(user))


@router.patch("/me", response_model=Envelope[UserResponse])
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    updated = await service.update_profile(db, user, **body.model_dump(exclude_none=True))
    return Envelope(data=UserResponse.model_validate(updated))


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


@router.get("/search", response_model=Envelope[list[UserSummary]])
async def search_users(
    q: str = Query(..., min_length=1, max_length=64),
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    users = await service.search_users(db, q, exclude_id=user.id, limit=limit)
    return Envelope(data=[UserSummary.model_validate(u) for u in users])


@router.get("/username-available", response_model=Envelope[UsernameAvailability])
async def username_available(
    username: str = Query(..., min_length=1, max_length=64),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    available = await service.is_username_available(db, username, exclude_id=user.id)
    return Envelope(data=UsernameAvailability(username=username, available=available))


@router.get("/by-username/{username}", response_model=Envelope[PublicUserResponse])
async def get_by_username(
    username: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    found = await service.get_profile_by_username(db, username)
    return Envelope(data=PublicUserResponse.model_validate(found))


@router.get("/{user_id}", response_model=Envelope[PublicUserResponse])
async def get_user(
    user_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    found = await service.get_profile(db, user_id)
    return Envelope(data=PublicUserResponse.model_validate(found))


@router.get("/{user_id}/stats", response_model=Envelope[UserStatsResponse])
async def get_user_stats(
    user_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    stats = await service.get_user_stats(db, user_id)
    return Envelope(data=UserStatsResponse(**stats))
