"""Payment reminders: a creditor nudges a friend about money owed from completed bets.

The amount is never taken from the client: it is the pair's net balance at
send time, and only a positive balance (the friend owes the sender) can be
reminded. One reminder per sender and recipient per cooldown window.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from ibetu.auth.service import get_user_by_id
from ibetu.bets.lifecycle import as_utc
from ibetu.bets.service import get_balance_with
from ibetu.config import get_settings
from ibetu.db.models import PaymentReminder, User
from ibetu.email.service import DeliveryStatus, EmailService
from ibetu.errors import ExternalServiceError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def last_reminder_sent(db: AsyncSession, sender_id: str, recipient_id: str) -> datetime | None:
    result = await db.execute(
        select(PaymentReminder.created_at)
        .where(PaymentReminder.sender_id == sender_id, PaymentReminder.recipient_id == recipient_id)
        .order_by(PaymentReminder.created_at.desc())
        .limit(1)
    )
    last = result.scalar_one_or_none()
    return as_utc(last) if last is not None else None

async def can_send_reminder(
    db: AsyncSession, sender_id: str, recipient_id: str, now: datetime | None = None,
) -> tuple[bool, datetime | None]:
    """(allowed, time of the last reminder to this friend or None)."""
    now = now or datetime.now(timezone.utc)
    last = await last_reminder_sent(db, sender_id, recipient_id)
    if last is None:
        return True, None
    cooldown = timedelta(hours=get_settings().reminder_cooldown_hours)
    return last <= now - cooldown, last

async def send_payment_reminder(
    db: AsyncSession,
    sender: User,
    friend_id: str,
    email_service: EmailService,
    now: datetime | None = None,
) -> PaymentReminder:
    """
    Email ``friend_id`` the amount they owe ``sender`` and record the send.

    A recipient who opted out of email still counts as reminded.

    Raises:
        ValidationError: Self-reminder, cooldown not elapsed, or nothing owed.
        NotFoundError: Unknown friend.
        ExternalServiceError: The email could not be delivered; nothing is recorded.
    """
    now = now or datetime.now(timezone.utc)
    sender_id = sender.id
    if friend_id == sender_id:
        raise ValidationError("Cannot send a reminder to yourself")
    friend = await get_user_by_id(db, friend_id)
    if friend is None:
        raise NotFoundError("User not found")

    allowed, _ = await can_send_reminder(db, sender_id, friend_id, now)
    if not allowed:
        hours = get_settings().reminder_cooldown_hours
        raise ValidationError(f"You already sent a reminder to this friend in the last {hours} hours")

    owed = await get_balance_with(db, sender_id, friend_id)
    if owed <= 0:
        raise ValidationError("This friend does not owe you anything")

    settings = get_settings()
    status = await email_service.notify(friend, "payment_reminder", {
        "recipient_name": friend.display_name,
        "sender_name": sender.display_name,
        "sender_username": sender.username,
        "amount": owed,
        "friends_url": f"{settings.frontend_base_url}/friends",
        "settings_url": f"{settings.frontend_base_url}/settings",
    })
    if status in (DeliveryStatus.FAILED, DeliveryStatus.RATE_LIMITED):
        raise ExternalServiceError("Failed to send email")

    reminder = PaymentReminder(sender_id=sender_id, recipient_id=friend_id, amount=owed, created_at=now)
    db.add(reminder)
    await db.commit()
    logger.info(
        "payment_reminder_sent",
        sender_id=sender_id,
        recipient_id=friend_id,
        amount=str(owed),
        delivery=status.value,
    )
    return reminder

async def get_reminder_history(
    db: AsyncSession, sender_id: str, friend_id: str | None = None, limit: int | None = None,
) -> Sequence[tuple[PaymentReminder, User]]:
    """The sender's most recent reminders with their recipients, newest first."""
    query = (
        select(PaymentReminder, User)
        .join(User, User.id == PaymentReminder.recipient_id)
        .where(PaymentReminder.sender_id == sender_id)
        .order_by(PaymentReminder.created_at.desc(), PaymentReminder.id.desc())
        .limit(limit or get_settings().reminder_history_limit)
    )
    if friend_id is not None:
        query = query.where(PaymentReminder.recipient_id == friend_id)
    result = await db.execute(query)
    return [(row.PaymentReminder, row.User) for row in result]
