"""
Email templates for iBetU.

All templates use inline CSS for maximum email client compatibility.
Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from html import escape

ORANGE = "#F97316"
ORANGE_DARK = "#EA580C"
TEXT_PRIMARY = "#1F2937"
TEXT_SECONDARY = "#4B5563"
TEXT_MUTED = "#6B7280"
SURFACE = "#F3F4F6"
BORDER = "#E5E7EB"


def _base_layout(content: str, settings_url: str, app_name: str = "iBetU") -> str:
    """Wrap content in the base email layout with the preferences footer."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: linear-gradient(135deg, {ORANGE}, {ORANGE_DARK}); padding: 30px; border-radius: 12px 12px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 28px;">{app_name}</h1>
    </div>
    <div style="background: #fff; padding: 30px; border: 1px solid {BORDER}; border-top: none; border-radius: 0 0 12px 12px;">
        {content}
    </div>
    <div style="margin-top: 20px; padding-top: 20px; border-top: 1px solid {BORDER}; text-align: center;">
        <p style="font-size: 12px; color: #9CA3AF;">
            Don't want to receive these emails? <a href="{settings_url}" style="color: {ORANGE}; text-decoration: underline;">Update your preferences</a>
        </p>
    </div>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    """Render an orange CTA button."""
    return f"""\
<div style="text-align: center; margin-top: 30px;">
    <a href="{url}" style="background: {ORANGE}; color: white; padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: 600; display: inline-block;">{label}</a>
</div>"""


def _money(amount: Decimal | float | str) -> str:
    return f"${Decimal(str(amount)):.2f}"


def _bet_box(label: str, title: str, description: str = "") -> str:
    extra = (
        f'<p style="margin: 10px 0 0 0; font-size: 14px; color: {TEXT_SECONDARY};">{escape(description)}</p>'
        if description
        else ""
    )
    return f"""\
<div style="background: {SURFACE}; border-radius: 8px; padding: 20px; margin: 20px 0;">
    <p style="margin: 0 0 10px 0; font-size: 14px; color: {TEXT_MUTED};">{label}</p>
    <p style="margin: 0; font-size: 18px; font-weight: 600; color: {TEXT_PRIMARY};">{escape(title)}</p>
    {extra}
</div>"""


def format_deadline(deadline: datetime) -> str:
    """e.g. ``Sunday, October 18, 2026``."""
    return f"{deadline:%A, %B} {deadline.day}, {deadline.year}"


def bet_invitation(
    recipient_name: str,
    creator_name: str,
    creator_username: str,
    bet_title: str,
    bet_description: str,
    amount: Decimal,
    deadline: datetime,
    bet_url: str,
    settings_url: str,
) -> tuple[str, str, str]:
    """
    Sent to the opponent when a bet is created.

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"{creator_name} challenged you to a bet!"
    when = format_deadline(deadline)
    content = f"""\
<h2 style="color: {TEXT_PRIMARY}; margin-top: 0;">Hey {escape(recipient_name)}!</h2>
<p style="font-size: 16px; color: {TEXT_SECONDARY};">
    <strong>{escape(creator_name)}</strong> (@{escape(creator_username)}) has challenged you to a bet!
</p>
{_bet_box("The Bet:", bet_title, bet_description)}
<div style="background: #FEF3C7; border: 2px solid #F59E0B; border-radius: 8px; padding: 20px; text-align: center; margin: 20px 0;">
    <p style="margin: 0 0 5px 0; font-size: 14px; color: #92400E;">Amount at Stake:</p>
    <span style="font-size: 36px; font-weight: bold; color: #B45309;">{_money(amount)}</span>
    <p style="margin: 10px 0 0 0; font-size: 14px; color: #92400E;">Deadline: {when}</p>
</div>
<p style="font-size: 14px; color: {TEXT_MUTED};">Think you can win? Accept the challenge and prove it!</p>
{_button(bet_url, "View &amp; Accept Bet")}"""
    text_body = (
        f"Hey {recipient_name}!\n\n"
        f"{creator_name} (@{creator_username}) has challenged you to a bet: {bet_title}\n"
        f"Amount at stake: {_money(amount)}\n"
        f"Deadline: {when}\n\n"
        f"View and accept the bet: {bet_url}\n\n"
        f"-- iBetU"
    )
    return subject, _base_layout(content, settings_url), text_body


def bet_accepted(
    recipient_name: str,
    acceptor_name: str,
    acceptor_username: str,
    bet_title: str,
    amount: Decimal,
    deadline: datetime,
    bet_url: str,
    settings_url: str,
) -> tuple[str, str, str]:
    """
    Sent to the creator when the opponent accepts.

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"{acceptor_name} accepted your bet!"
    when = format_deadline(deadline)
    content = f"""\
<h2 style="color: {TEXT_PRIMARY}; margin-top: 0;">Game On, {escape(recipient_name)}!</h2>
<p style="font-size: 16px; color: {TEXT_SECONDARY};">
    <strong>{escape(acceptor_name)}</strong> (@{escape(acceptor_username)}) has accepted your bet challenge!
</p>
{_bet_box("The Bet:", bet_title)}
<div style="background: #DCFCE7; border: 2px solid #22C55E; border-radius: 8px; padding: 20px; text-align: center; margin: 20px 0;">
    <p style="margin: 0 0 5px 0; font-size: 14px; color: #166534;">Bet is now ACTIVE!</p>
    <span style="font-size: 36px; font-weight: bold; color: #15803D;">{_money(amount)}</span>
    <p style="margin: 10px 0 0 0; font-size: 14px; color: #166534;">Deadline: {when}</p>
</div>
<p style="font-size: 14px; color: {TEXT_MUTED};">The bet is now active. May the best person win!</p>
{_button(bet_url, "View Bet Details")}"""
    text_body = (
        f"Game on, {recipient_name}!\n\n"
        f"{acceptor_name} (@{acceptor_username}) accepted your bet: {bet_title}\n"
        f"Amount: {_money(amount)}\n"
        f"Deadline: {when}\n\n"
        f"View the bet: {bet_url}\n\n"
        f"-- iBetU"
    )
    return subject, _base_layout(content, settings_url), text_body


def winner_confirmation(
    recipient_name: str,
    declarer_name: str,
    winner_name: str,
    bet_title: str,
    amount: Decimal,
    bet_url: str,
    settings_url: str,
) -> tuple[str, str, str]:
    """
    Sent to the other party after one side declares a winner.

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"{declarer_name} declared a winner - Please confirm!"
    content = f"""\
<h2 style="color: {TEXT_PRIMARY}; margin-top: 0;">Hey {escape(recipient_name)}!</h2>
<p style="font-size: 16px; color: {TEXT_SECONDARY};">
    <strong>{escape(declarer_name)}</strong> has declared a winner for your bet and needs your confirmation.
</p>
{_bet_box("Bet:", bet_title)}
<div style="background: #FEF3C7; border: 2px solid #F59E0B; border-radius: 8px; padding: 20px; text-align: center; margin: 20px 0;">
    <p style="margin: 0 0 5px 0; font-size: 14px; color: #92400E;">Declared Winner:</p>
    <span style="font-size: 24px; font-weight: bold; color: #B45309;">{escape(winner_name)}</span>
    <p style="margin: 10px 0 0 0; font-size: 14px; color: #92400E;">Amount: {_money(amount)}</p>
</div>
<p style="font-size: 14px; color: {TEXT_MUTED};">
    Please review and confirm this result. The bet will be marked as completed once both parties agree on the winner.
</p>
{_button(bet_url, "Review &amp; Confirm")}"""
    text_body = (
        f"Hey {recipient_name}!\n\n"
        f"{declarer_name} declared {winner_name} the winner of: {bet_title} ({_money(amount)}).\n"
        f"The bet completes once both of you agree on the winner.\n\n"
        f"Review and confirm: {bet_url}\n\n"
        f"-- iBetU"
    )
    return subject, _base_layout(content, settings_url), text_body


def payment_reminder(
    recipient_name: str,
    sender_name: str,
    sender_username: str,
    amount: Decimal,
    friends_url: str,
    settings_url: str,
) -> tuple[str, str, str]:
    """
    Sent by a creditor to a friend whose completed bets leave them owing money.

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"{sender_name} sent you a payment reminder"
    content = f"""\
<h2 style="color: {TEXT_PRIMARY}; margin-top: 0;">Hey {escape(recipient_name)}!</h2>
<p style="font-size: 16px; color: {TEXT_SECONDARY};">
    <strong>{escape(sender_name)}</strong> (@{escape(sender_username)}) is reminding you that you owe them:
</p>
<div style="background: #FEF3C7; border: 2px solid #F59E0B; border-radius: 8px; padding: 20px; text-align: center; margin: 20px 0;">
    <span style="font-size: 36px; font-weight: bold; color: #B45309;">{_money(amount)}</span>
</div>
<p style="font-size: 14px; color: {TEXT_MUTED};">
    This amount is based on completed bets between you two. Time to settle up!
</p>
{_button(friends_url, "View on iBetU")}"""
    text_body = (
        f"Hey {recipient_name}!\n\n"
        f"{sender_name} (@{sender_username}) is reminding you that you owe them {_money(amount)}.\n"
        f"The amount is based on completed bets between you two.\n\n"
        f"View on iBetU: {friends_url}\n\n"
        f"-- iBetU"
    )
    return subject, _base_layout(content, settings_url), text_body
