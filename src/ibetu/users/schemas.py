"""Request/response schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class UserSummary(BaseModel):
    """Public fields shown wherever another user is referenced."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    display_name: str
    avatar_url: str | None = None


class UserResponse(UserSummary):
    email: str
    wallet_balance: Decimal
    total_bets: int
    bets_won: int
    bets_lost: int
    email_notifications_enabled: bool
    created_at: datetime


class PublicUserResponse(UserSummary):
    total_bets: int
    bets_won: int
    bets_lost: int


class ProfileUpdateRequest(BaseModel):
    """Update user profile fields."""

    display_name: str | None = Field(None, min_length=1, max_length=128)
    username: str | None = Field(None, min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.]+$")
    avatar_url: str | None = Field(None, max_length=512)
    email_notifications_enabled: bool | None = None


class UsernameAvailability(BaseModel):
    username: str
    available: bool


class UserStatsResponse(BaseModel):
    total_bets: int
    bets_won: int
    bets_lost: int
    win_rate: int
    wallet_balance: Decimal
