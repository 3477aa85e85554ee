"""Fire-and-forget bet emails.

Sends run as background tasks; a failed send is logged and swallowed so it
never affects the state change that triggered it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from ibetu.config import get_settings
from ibetu.db.models import Bet, User
from ibetu.email.service import DeliveryStatus, EmailService, get_email_service, wants_email
from ibetu.errors import ExternalServiceError

logger = structlog.get_logger()

# Strong references so pending tasks are not garbage collected mid-flight.
_background_tasks: set[asyncio.Task[None]] = set()


async def _guarded(coro: Coroutine[Any, Any, None], event: str) -> None:
    try:
        await coro
    except Exception:
        logger.warning("notification_failed", notification=event, exc_info=True)


def fire_and_forget(coro: Coroutine[Any, Any, None], event: str) -> asyncio.Task[None]:
    """Schedule ``coro`` without awaiting it; failures are logged, never raised."""
    task = asyncio.create_task(_guarded(coro, event))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


class BetNotifier:
    """Builds bet emails from ORM rows and delivers them in the background."""

    def __init__(self, email_service: EmailService) -> None:
        self.email_service = email_service
        self.settings = get_settings()

    def _bet_url(self, bet: Bet) -> str:
        return f"{self.settings.frontend_base_url}/bets/{bet.id}"

    def _settings_url(self) -> str:
        return f"{self.settings.frontend_base_url}/settings"

    async def _send(self, recipient_id: str, to: str, template: str, context: dict[str, Any]) -> None:
        status = await self.email_service.send_template(to=to, template_name=template, context=context)
        if status is not DeliveryStatus.SENT:
            raise ExternalServiceError(f"{template} email to user {recipient_id}: {status.value}")
        logger.info("notification_sent", notification=template, recipient_id=recipient_id)

    def _schedule(self, recipient: User, template: str, context: dict[str, Any]) -> asyncio.Task[None] | None:
        if not self.settings.email_enabled:
            return None
        if not wants_email(recipient):
            logger.info("notification_skipped", notification=template, recipient_id=recipient.id)
            return None
        # Context is rendered from plain values now; the ORM session may be gone when the task runs.
        return fire_and_forget(self._send(recipient.id, recipient.email, template, context), template)

    def bet_invitation(self, bet: Bet, creator: User, opponent: User) -> asyncio.Task[None] | None:
        return self._schedule(opponent, "bet_invitation", {
            "recipient_name": opponent.display_name,
            "creator_name": creator.display_name,
            "creator_username": creator.username,
            "bet_title": bet.title,
            "bet_description": bet.description,
            "amount": bet.amount,
            "deadline": bet.deadline,
            "bet_url": self._bet_url(bet),
            "settings_url": self._settings_url(),
        })

    def bet_accepted(self, bet: Bet, creator: User, opponent: User) -> asyncio.Task[None] | None:
        return self._schedule(creator, "bet_accepted", {
            "recipient_name": creator.display_name,
            "acceptor_name": opponent.display_name,
            "acceptor_username": opponent.username,
            "bet_title": bet.title,
            "amount": bet.amount,
            "deadline": bet.deadline,
            "bet_url": self._bet_url(bet),
            "settings_url": self._settings_url(),
        })

    def winner_confirmation(
        self, bet: Bet, declarer: User, recipient: User, winner: User,
    ) -> asyncio.Task[None] | None:
        return self._schedule(recipient, "winner_confirmation", {
            "recipient_name": recipient.display_name,
            "declarer_name": declarer.display_name,
            "winner_name": winner.display_name,
            "bet_title": bet.title,
            "amount": bet.amount,
            "bet_url": self._bet_url(bet),
            "settings_url": self._settings_url(),
        })


def get_bet_notifier() -> BetNotifier:
    """FastAPI dependency: notifier over the shared email service."""
    return BetNotifier(get_email_service())
