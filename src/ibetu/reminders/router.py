"""Payment reminder router: /api/v1/reminders/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.auth.dependencies import get_current_user
from ibetu.bets.lifecycle import as_utc
from ibetu.database import get_session
from ibetu.db.models import PaymentReminder, User
from ibetu.email.service import EmailService, get_email_service
from ibetu.reminders import service
from ibetu.reminders.schemas import ReminderCreateRequest, ReminderResponse, ReminderStatusResponse
from ibetu.schemas import Envelope
from ibetu.users.schemas import UserSummary

router = APIRouter(prefix="/api/v1/reminders", tags=["Reminders"])


def _reminder_response(reminder: PaymentReminder, recipient: User | None) -> ReminderResponse:
    return ReminderResponse(
        id=reminder.id,
        recipient_id=reminder.recipient_id,
        amount=reminder.amount,
        created_at=as_utc(reminder.created_at),
        recipient=UserSummary.model_validate(recipient) if recipient is not None else None,
    )


@router.post("", response_model=Envelope[ReminderResponse])
async def send_reminder(
    body: ReminderCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
):
    """Email a friend what they owe the caller. Limited to one per friend per day."""
    reminder = await service.send_payment_reminder(db, user, body.friend_id, email_service)
    return Envelope(data=_reminder_response(reminder, None))


@router.get("", response_model=Envelope[list[ReminderResponse]])
async def reminder_history(
    friend_id: str | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Reminders the caller has sent, newest first."""
    rows = await service.get_reminder_history(db, user.id, friend_id=friend_id)
    return Envelope(data=[_reminder_response(reminder, recipient) for reminder, recipient in rows])


@router.get("/status/{friend_id}", response_model=Envelope[ReminderStatusResponse])
async def reminder_status(
    friend_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    can_send, last_sent = await service.can_send_reminder(db, user.id, friend_id)
    return Envelope(data=ReminderStatusResponse(can_send=can_send, last_sent_at=last_sent))
