"""Pydantic response models for achievement endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from ibetu.achievements.catalog import Achievement, rarity_label


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    rarity: str
    rarity_label: str


class UnlockedAchievementResponse(AchievementResponse):
    unlocked_at: datetime


class UserAchievementsResponse(BaseModel):
    unlocked: list[UnlockedAchievementResponse]
    total_available: int
    total_unlocked: int


class AchievementCheckResponse(BaseModel):
    new_achievements: list[AchievementResponse]


def achievement_response(a: Achievement) -> AchievementResponse:
    return AchievementResponse(
        id=a.id,
        name=a.name,
        description=a.description,
        icon=a.icon,
        category=a.category,
        rarity=a.rarity,
        rarity_label=rarity_label(a.rarity),
    )
