"""Background bet notifications — scheduling, opt-out and failure isolation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from ibetu.bets.notifier import BetNotifier, fire_and_forget
from ibetu.email.service import DeliveryStatus


def _user(user_id: str, email: str = "", enabled: bool = True):
    return SimpleNamespace(
        id=user_id,
        username=user_id,
        display_name=user_id.title(),
        email=email or f"{user_id}@example.com",
        email_notifications_enabled=enabled,
    )


def _bet():
    return SimpleNamespace(
        id=7,
        title="Rain tomorrow",
        description="",
        amount=Decimal("20.00"),
        deadline=datetime.now(timezone.utc) + timedelta(days=1),
    )


@pytest.fixture
def email_service():
    service = MagicMock()
    service.send_template = AsyncMock(return_value=DeliveryStatus.SENT)
    return service


class TestBetNotifier:
    @pytest.mark.asyncio
    async def test_invitation_goes_to_opponent(self, email_service):
        notifier = BetNotifier(email_service)
        task = notifier.bet_invitation(_bet(), _user("alice"), _user("bob"))
        await task

        kwargs = email_service.send_template.call_args.kwargs
        assert kwargs["to"] == "bob@example.com"
        assert kwargs["template_name"] == "bet_invitation"
        assert kwargs["context"]["creator_name"] == "Alice"
        assert kwargs["context"]["bet_url"].endswith("/bets/7")

    @pytest.mark.asyncio
    async def test_accepted_goes_to_creator(self, email_service):
        notifier = BetNotifier(email_service)
        await notifier.bet_accepted(_bet(), _user("alice"), _user("bob"))

        kwargs = email_service.send_template.call_args.kwargs
        assert kwargs["to"] == "alice@example.com"
        assert kwargs["context"]["acceptor_username"] == "bob"

    @pytest.mark.asyncio
    async def test_opted_out_user_is_skipped(self, email_service):
        notifier = BetNotifier(email_service)
        task = notifier.winner_confirmation(_bet(), _user("alice"), _user("bob", enabled=False), _user("alice"))
        assert task is None
        email_service.send_template.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_send_is_swallowed(self, email_service):
        email_service.send_template = AsyncMock(return_value=DeliveryStatus.FAILED)
        notifier = BetNotifier(email_service)
        task = notifier.bet_invitation(_bet(), _user("alice"), _user("bob"))
        await task
        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_provider_exception_is_swallowed(self, email_service):
        email_service.send_template = AsyncMock(side_effect=ConnectionError("smtp down"))
        notifier = BetNotifier(email_service)
        task = notifier.bet_accepted(_bet(), _user("alice"), _user("bob"))
        await task
        assert task.exception() is None


class TestFireAndForget:
    @pytest.mark.asyncio
    async def test_runs_in_background(self):
        ran = []

        async def job():
            ran.append(True)

        await fire_and_forget(job(), "test")
        assert ran == [True]

    @pytest.mark.asyncio
    async def test_exception_does_not_escape(self):
        async def job():
            raise RuntimeError("boom")

        task = fire_and_forget(job(), "test")
        await task
        assert task.exception() is None
