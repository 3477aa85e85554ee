"""ORM models for users, friendships, bets, achievement unlocks and payment reminders.

Achievement definitions are not stored; see ``ibetu.achievements.catalog``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ibetu.db.base import Base

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite.
BigId = BigInteger().with_variant(Integer, "sqlite")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table. ``id`` is the identity provider's subject."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, server_default="")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    wallet_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0"
    )
    total_bets: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    bets_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    bets_lost: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    email_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Friendships
# ---------------------------------------------------------------------------


def make_pair_key(a: str, b: str) -> str:
    """Order-independent key for a pair of user ids."""
    first, second = sorted((a, b))
    return f"{first}:{second}"


class Friendship(Base):
    """Directed request edge; ``pair_key`` makes the unordered pair unique."""

    __tablename__ = "friendships"
    __table_args__ = (
        UniqueConstraint("pair_key", name="friendships_pair_key_key"),
        Index("ix_friendships_friend_id_status", "friend_id", "status"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    friend_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    pair_key: Mapped[str] = mapped_column(String(130), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    added_via: Mapped[str] = mapped_column(String(16), nullable=False, default="nickname", server_default="nickname")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Bets
# ---------------------------------------------------------------------------


class Bet(Base):
    """A wager between two friends.

    ``creator_winner_id`` / ``opponent_winner_id`` hold each party's vote;
    ``winner_id`` is the latest declared winner and, once completed, the
    committed one.
    """

    __tablename__ = "bets"
    __table_args__ = (
        Index("ix_bets_creator_id_status", "creator_id", "status"),
        Index("ix_bets_opponent_id_status", "opponent_id", "status"),
        Index("ix_bets_resolved_at", "resolved_at"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    creator_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    opponent_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    outcome: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    winner_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("users.id"), nullable=True)
    creator_winner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    opponent_winner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verification_method: Mapped[str] = mapped_column(
        String(32), nullable=False, default="mutual_agreement", server_default="mutual_agreement"
    )
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    creator_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    opponent_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class UserAchievement(Base):
    """Achievement unlocks — UNIQUE(user_id, achievement_id) enforces at-most-once grants."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_id_achievement_id_key"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Payment reminders
# ---------------------------------------------------------------------------


class PaymentReminder(Base):
    """One reminder email from a creditor to a friend who owes them.

    ``amount`` is the balance owed at send time. Rows are the cooldown record
    and the sender's history; they are never updated.
    """

    __tablename__ = "payment_reminders"
    __table_args__ = (
        Index("ix_payment_reminders_sender_recipient_created", "sender_id", "recipient_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    sender_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
