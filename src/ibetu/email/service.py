"""
Outgoing email for iBetU.

Templates render into an ``OutgoingEmail`` that a provider delivers: the
Resend HTTP API (default) or SMTP. ``EmailService`` sits in front of the
provider and applies the recipient's opt-out and a per-recipient hourly cap.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from dataclasses import dataclass
from email.message import EmailMessage
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

import aiosmtplib
import httpx
import structlog

from ibetu.config import Settings, get_settings
from ibetu.email.templates import bet_accepted, bet_invitation, payment_reminder, winner_confirmation
from ibetu.errors import ExternalServiceError
from ibetu.redis_client import get_redis_or_none

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from ibetu.db.models import User

logger = structlog.get_logger()

TEMPLATES: dict[str, Callable[..., tuple[str, str, str]]] = {
    "bet_invitation": bet_invitation,
    "bet_accepted": bet_accepted,
    "winner_confirmation": winner_confirmation,
    "payment_reminder": payment_reminder,
}


class DeliveryStatus(Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str


class EmailProvider(Protocol):
    """Delivers one message or raises ``ExternalServiceError``."""

    name: str

    async def deliver(self, message: OutgoingEmail, sender: str) -> None: ...


class ResendProvider:
    name = "resend"
    api_url = "https://api.resend.com/emails"

    def __init__(self, api_key: str, client: httpx.AsyncClient | None = None) -> None:
        self.api_key = api_key
        self._client = client

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> None:
        response = await client.post(
            self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=payload,
            timeout=10.0,
        )
        response.raise_for_status()

    async def deliver(self, message: OutgoingEmail, sender: str) -> None:
        if not self.api_key:
            raise ExternalServiceError("Resend API key is not configured")
        payload = {
            "from": sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            if self._client is not None:
                await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    await self._post(client, payload)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Resend delivery failed: {e}") from e


class SMTPProvider:
    name = "smtp"

    def __init__(self, host: str, port: int, username: str = "", password: str = "", use_tls: bool = True) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    @staticmethod
    def build_message(message: OutgoingEmail, sender: str) -> EmailMessage:
        """Plain-text body with an HTML alternative."""
        mime = EmailMessage()
        mime["From"] = sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.set_content(message.text)
        mime.add_alternative(message.html, subtype="html")
        return mime

    async def deliver(self, message: OutgoingEmail, sender: str) -> None:
        try:
            await aiosmtplib.send(
                self.build_message(message, sender),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise ExternalServiceError(f"SMTP delivery failed: {e}") from e


def provider_from_settings(settings: Settings) -> EmailProvider:
    name = settings.email_provider.lower()
    if name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    if name == "resend":
        return ResendProvider(api_key=settings.resend_api_key)
    msg = f"Unsupported email provider: {name}"
    raise ValueError(msg)


def wants_email(user: User) -> bool:
    """The user has an address and has not opted out of notifications."""
    return bool(user.email) and user.email_notifications_enabled


class EmailService:
    """
    Renders templates and hands them to the provider.

    Every delivery outcome is reported as a ``DeliveryStatus``; provider
    errors are logged here and never raised to the caller.
    """

    RATE_LIMIT_WINDOW = 3600

    def __init__(
        self,
        provider: EmailProvider,
        sender: str = "iBetU <noreply@i-bet-u.com>",
        redis: Redis | None = None,
        hourly_limit: int = 20,
    ) -> None:
        self.provider = provider
        self.sender = sender
        self._redis = redis
        self.hourly_limit = hourly_limit

    @classmethod
    def from_settings(cls, settings: Settings, redis: Redis | None = None) -> EmailService:
        return cls(
            provider=provider_from_settings(settings),
            sender=f"{settings.email_from_name} <{settings.email_from_address}>",
            redis=redis,
            hourly_limit=settings.email_rate_limit_per_hour,
        )

    async def _within_hourly_limit(self, address: str) -> bool:
        if self._redis is None:
            return True
        key = f"email_rate:{hashlib.sha256(address.lower().encode()).hexdigest()}"
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.RATE_LIMIT_WINDOW)
        return count <= self.hourly_limit

    async def deliver(self, message: OutgoingEmail) -> DeliveryStatus:
        if not await self._within_hourly_limit(message.to):
            logger.warning("email_rate_limited", to=message.to, subject=message.subject)
            return DeliveryStatus.RATE_LIMITED
        try:
            await self.provider.deliver(message, self.sender)
        except ExternalServiceError as e:
            logger.error("email_send_failed", to=message.to, provider=self.provider.name, error=e.message)
            return DeliveryStatus.FAILED
        logger.info("email_sent", to=message.to, subject=message.subject, provider=self.provider.name)
        return DeliveryStatus.SENT

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> DeliveryStatus:
        """
        Render ``template_name`` with ``context`` and deliver it to ``to``.

        Raises:
            ValueError: If the template name is unknown.
        """
        render = TEMPLATES.get(template_name)
        if render is None:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)
        subject, html, text = render(**context)
        return await self.deliver(OutgoingEmail(to=to, subject=subject, html=html, text=text))

    async def notify(self, recipient: User, template_name: str, context: dict[str, Any]) -> DeliveryStatus:
        """Like ``send_template`` but addressed to a user; opted-out users are skipped."""
        if not wants_email(recipient):
            logger.info("email_skipped", recipient_id=recipient.id, template=template_name)
            return DeliveryStatus.SKIPPED
        return await self.send_template(recipient.email, template_name, context)


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """FastAPI dependency: the process-wide email service, rate limited when Redis is up."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService.from_settings(get_settings(), redis=get_redis_or_none())
    return _email_service
