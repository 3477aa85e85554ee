"""Request/response schemas for friendship endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ibetu.users.schemas import UserSummary


class FriendRequestCreate(BaseModel):
    friend_id: str = Field(..., min_length=1, max_length=64)
    added_via: Literal["qr", "phone", "nickname"] = "nickname"


class FriendshipResponse(BaseModel):
    id: int
    user_id: str
    friend_id: str
    status: str
    added_via: str
    created_at: datetime


class FriendEntry(BaseModel):
    """A friendship row paired with the other user."""

    friendship_id: int
    status: str
    added_via: str
    created_at: datetime
    user: UserSummary


class FriendshipStatusResponse(BaseModel):
    is_friend: bool
    status: str | None = None


class CountResponse(BaseModel):
    count: int
