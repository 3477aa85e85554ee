"""Achievement API endpoints — 4 routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.achievements.catalog import get_achievement, list_catalog
from ibetu.achievements.engine import check_and_award_achievements
from ibetu.achievements.schemas import (
    AchievementCheckResponse,
    AchievementResponse,
    UnlockedAchievementResponse,
    UserAchievementsResponse,
    achievement_response,
)
from ibetu.achievements.service import list_user_achievements
from ibetu.auth.dependencies import get_current_user
from ibetu.bets.lifecycle import as_utc
from ibetu.database import get_session
from ibetu.db.models import User
from ibetu.schemas import Envelope
from ibetu.users.service import get_profile

router = APIRouter(prefix="/api/v1", tags=["Achievements"])


async def _user_achievements(db: AsyncSession, user_id: str) -> UserAchievementsResponse:
    unlocked = []
    for ua, achievement in await list_user_achievements(db, user_id):
        if achievement is None:
            # Unlock for an id no longer in the catalog.
            continue
        unlocked.append(UnlockedAchievementResponse(
            **achievement_response(achievement).model_dump(),
            unlocked_at=as_utc(ua.unlocked_at),
        ))
    return UserAchievementsResponse(
        unlocked=unlocked,
        total_available=len(list_catalog()),
        total_unlocked=len(unlocked),
    )


@router.get("/achievements", response_model=Envelope[list[AchievementResponse]])
async def list_achievements():
    """Full catalog. Public."""
    return Envelope(data=[achievement_response(a) for a in list_catalog()])


@router.get("/users/me/achievements", response_model=Envelope[UserAchievementsResponse])
async def my_achievements(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    return Envelope(data=await _user_achievements(db, user.id))


@router.post("/users/me/achievements/check", response_model=Envelope[AchievementCheckResponse])
async def check_my_achievements(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    """Re-run the cumulative rules for the caller and return anything newly unlocked."""
    awarded = await check_and_award_achievements(db, user.id)
    return Envelope(data=AchievementCheckResponse(
        new_achievements=[achievement_response(get_achievement(a)) for a in awarded],
    ))


@router.get("/users/{user_id}/achievements", response_model=Envelope[UserAchievementsResponse])
async def user_achievements(
    user_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await get_profile(db, user_id)
    return Envelope(data=await _user_achievements(db, user_id))
