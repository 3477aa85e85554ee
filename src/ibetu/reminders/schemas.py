"""Request/response schemas for payment reminder endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ibetu.users.schemas import UserSummary


class ReminderCreateRequest(BaseModel):
    friend_id: str = Field(..., min_length=1, max_length=64)


class ReminderResponse(BaseModel):
    id: int
    recipient_id: str
    amount: Decimal
    created_at: datetime
    recipient: UserSummary | None = None


class ReminderStatusResponse(BaseModel):
    can_send: bool
    last_sent_at: datetime | None = None
