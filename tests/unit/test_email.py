"""Email templates, the email service and its delivery providers."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ibetu.config import Settings
from ibetu.email.service import (
    TEMPLATES,
    DeliveryStatus,
    EmailService,
    OutgoingEmail,
    ResendProvider,
    SMTPProvider,
)
from ibetu.email.templates import (
    bet_accepted,
    bet_invitation,
    format_deadline,
    payment_reminder,
    winner_confirmation,
)
from ibetu.errors import ExternalServiceError

DEADLINE = datetime(2026, 10, 18, 18, 0, tzinfo=timezone.utc)


class TestTemplates:
    def test_bet_invitation(self):
        subject, html, text = bet_invitation(
            recipient_name="Bob",
            creator_name="Alice",
            creator_username="alice",
            bet_title="Lakers win tonight",
            bet_description="Regular time only",
            amount=Decimal("50"),
            deadline=DEADLINE,
            bet_url="https://i-bet-u.com/bets/1",
            settings_url="https://i-bet-u.com/settings",
        )
        assert subject == "Alice challenged you to a bet!"
        assert "$50.00" in html and "$50.00" in text
        assert "Lakers win tonight" in html
        assert "https://i-bet-u.com/bets/1" in text
        assert "https://i-bet-u.com/settings" in html

    def test_html_is_escaped(self):
        _, html, _ = bet_invitation(
            recipient_name="Bob",
            creator_name="<script>",
            creator_username="x",
            bet_title="<b>title</b>",
            bet_description="",
            amount=Decimal("1"),
            deadline=DEADLINE,
            bet_url="u",
            settings_url="s",
        )
        assert "<script>" not in html
        assert "&lt;b&gt;title&lt;/b&gt;" in html

    def test_bet_accepted(self):
        subject, _, text = bet_accepted(
            recipient_name="Alice",
            acceptor_name="Bob",
            acceptor_username="bob",
            bet_title="Lakers win tonight",
            amount=Decimal("12.5"),
            deadline=DEADLINE,
            bet_url="u",
            settings_url="s",
        )
        assert subject == "Bob accepted your bet!"
        assert "$12.50" in text

    def test_winner_confirmation(self):
        subject, html, _ = winner_confirmation(
            recipient_name="Bob",
            declarer_name="Alice",
            winner_name="Alice",
            bet_title="Lakers win tonight",
            amount=Decimal("50"),
            bet_url="u",
            settings_url="s",
        )
        assert subject == "Alice declared a winner - Please confirm!"
        assert "Alice" in html

    def test_format_deadline(self):
        assert format_deadline(DEADLINE) == "Sunday, October 18, 2026"

    def test_payment_reminder(self):
        subject, html, text = payment_reminder(
            recipient_name="Bob",
            sender_name="Alice",
            sender_username="alice",
            amount=Decimal("35"),
            friends_url="https://i-bet-u.com/friends",
            settings_url="https://i-bet-u.com/settings",
        )
        assert subject == "Alice sent you a payment reminder"
        assert "$35.00" in html and "$35.00" in text
        assert "@alice" in text
        assert "https://i-bet-u.com/friends" in html

    def test_registry(self):
        assert set(TEMPLATES) == {"bet_invitation", "bet_accepted", "winner_confirmation", "payment_reminder"}


WINNER_CONTEXT = {
    "recipient_name": "Bob",
    "declarer_name": "Alice",
    "winner_name": "Alice",
    "bet_title": "T",
    "amount": Decimal("5"),
    "bet_url": "u",
    "settings_url": "s",
}


def _message(to: str = "a@b.c") -> OutgoingEmail:
    return OutgoingEmail(to=to, subject="s", html="<p>h</p>", text="h")


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.name = "fake"
    provider.deliver = AsyncMock(return_value=None)
    return provider


class TestEmailService:
    @pytest.mark.asyncio
    async def test_send_template_renders_and_delivers(self, provider):
        service = EmailService(provider=provider, sender="iBetU <noreply@i-bet-u.com>")

        status = await service.send_template("bob@example.com", "winner_confirmation", WINNER_CONTEXT)

        assert status is DeliveryStatus.SENT
        message, sender = provider.deliver.call_args.args
        assert message.to == "bob@example.com"
        assert "declared a winner" in message.subject
        assert sender == "iBetU <noreply@i-bet-u.com>"

    @pytest.mark.asyncio
    async def test_unknown_template(self, provider):
        service = EmailService(provider=provider)
        with pytest.raises(ValueError, match="Unknown template"):
            await service.send_template("a@b.c", "nope", {})

    @pytest.mark.asyncio
    async def test_provider_failure_is_reported_not_raised(self, provider):
        provider.deliver = AsyncMock(side_effect=ExternalServiceError("boom"))
        service = EmailService(provider=provider)
        assert await service.deliver(_message()) is DeliveryStatus.FAILED

    @pytest.mark.asyncio
    async def test_hourly_limit(self, provider):
        redis = MagicMock()
        redis.incr = AsyncMock(side_effect=[1, 2, 3])
        redis.expire = AsyncMock()
        service = EmailService(provider=provider, redis=redis, hourly_limit=2)

        results = [await service.deliver(_message()) for _ in range(3)]

        assert results == [DeliveryStatus.SENT, DeliveryStatus.SENT, DeliveryStatus.RATE_LIMITED]
        assert provider.deliver.await_count == 2
        redis.expire.assert_awaited_once_with(redis.incr.call_args.args[0], EmailService.RATE_LIMIT_WINDOW)

    @pytest.mark.asyncio
    async def test_notify_skips_opted_out_users(self, provider):
        service = EmailService(provider=provider)
        opted_out = SimpleNamespace(id="bob", email="bob@example.com", email_notifications_enabled=False)
        no_address = SimpleNamespace(id="carol", email="", email_notifications_enabled=True)

        assert await service.notify(opted_out, "winner_confirmation", WINNER_CONTEXT) is DeliveryStatus.SKIPPED
        assert await service.notify(no_address, "winner_confirmation", WINNER_CONTEXT) is DeliveryStatus.SKIPPED
        provider.deliver.assert_not_called()

    def test_from_settings_picks_provider(self):
        smtp = EmailService.from_settings(Settings(email_provider="smtp", smtp_host="mail.local"))
        assert isinstance(smtp.provider, SMTPProvider)
        resend = EmailService.from_settings(Settings(email_provider="resend", email_from_name="iBetU"))
        assert isinstance(resend.provider, ResendProvider)
        assert resend.sender.startswith("iBetU <")
        with pytest.raises(ValueError, match="Unsupported email provider"):
            EmailService.from_settings(Settings(email_provider="pigeon"))


class TestProviders:
    @pytest.mark.asyncio
    async def test_resend_posts_message(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "msg_1"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = ResendProvider(api_key="re_test", client=client)
            await provider.deliver(_message("bob@example.com"), "iBetU <noreply@i-bet-u.com>")

        assert len(requests) == 1
        request = requests[0]
        assert request.headers["Authorization"] == "Bearer re_test"
        payload = json.loads(request.content)
        assert payload["to"] == ["bob@example.com"]
        assert payload["from"] == "iBetU <noreply@i-bet-u.com>"

    @pytest.mark.asyncio
    async def test_resend_error_status_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"}))
        async with httpx.AsyncClient(transport=transport) as client:
            provider = ResendProvider(api_key="re_test", client=client)
            with pytest.raises(ExternalServiceError, match="Resend delivery failed"):
                await provider.deliver(_message(), "noreply@i-bet-u.com")

    @pytest.mark.asyncio
    async def test_resend_without_api_key(self):
        with pytest.raises(ExternalServiceError, match="not configured"):
            await ResendProvider(api_key="").deliver(_message(), "noreply@i-bet-u.com")

    def test_smtp_message_has_text_and_html_parts(self):
        mime = SMTPProvider.build_message(_message("bob@example.com"), "noreply@i-bet-u.com")
        assert mime["To"] == "bob@example.com"
        assert mime.get_body(("plain",)).get_content().strip() == "h"
        assert "<p>h</p>" in mime.get_body(("html",)).get_content()
