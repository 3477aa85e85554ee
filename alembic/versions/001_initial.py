"""Initial schema: users, friendships, bets, user_achievements.

Friendships are unique per unordered pair (pair_key) and unlocks are unique
per (user_id, achievement_id). Achievement definitions live in code.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the core tables."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(128), nullable=False),
        sa.Column("email", sa.String(320), server_default="", nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("wallet_balance", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("total_bets", sa.Integer(), server_default="0", nullable=False),
        sa.Column("bets_won", sa.Integer(), server_default="0", nullable=False),
        sa.Column("bets_lost", sa.Integer(), server_default="0", nullable=False),
        sa.Column("email_notifications_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("username", name="users_username_key"),
    )
    # Case-insensitive username lookups and uniqueness
    op.execute("CREATE UNIQUE INDEX ix_users_username_lower ON users (lower(username))")
    op.create_index("ix_users_bets_won", "users", ["bets_won"])

    # --- friendships ---
    op.create_table(
        "friendships",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("friend_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pair_key", sa.String(130), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("added_via", sa.String(16), server_default="nickname", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("pair_key", name="friendships_pair_key_key"),
        sa.CheckConstraint("status IN ('pending', 'accepted', 'declined')", name="friendships_status_check"),
        sa.CheckConstraint("user_id <> friend_id", name="friendships_not_self_check"),
    )
    op.create_index("ix_friendships_friend_id_status", "friendships", ["friend_id", "status"])

    # --- bets ---
    op.create_table(
        "bets",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), server_default="", nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("creator_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("opponent_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("outcome", sa.String(16), server_default="pending", nullable=False),
        sa.Column("winner_id", sa.String(64), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("creator_winner_id", sa.String(64), nullable=True),
        sa.Column("opponent_winner_id", sa.String(64), nullable=True),
        sa.Column("verification_method", sa.String(32), server_default="mutual_agreement", nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("creator_approved", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("opponent_approved", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount > 0", name="bets_amount_check"),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'declined', 'expired', 'disputed')",
            name="bets_status_check",
        ),
        sa.CheckConstraint(
            "winner_id IS NULL OR winner_id IN (creator_id, opponent_id)", name="bets_winner_check",
        ),
    )
    op.create_index("ix_bets_creator_id_status", "bets", ["creator_id", "status"])
    op.create_index("ix_bets_opponent_id_status", "bets", ["opponent_id", "status"])
    op.create_index("ix_bets_resolved_at", "bets", ["resolved_at"])

    # --- user_achievements ---
    op.create_table(
        "user_achievements",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("achievement_id", sa.String(64), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_id_achievement_id_key"),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("user_achievements")
    op.drop_index("ix_bets_resolved_at", table_name="bets")
    op.drop_index("ix_bets_opponent_id_status", table_name="bets")
    op.drop_index("ix_bets_creator_id_status", table_name="bets")
    op.drop_table("bets")
    op.drop_index("ix_friendships_friend_id_status", table_name="friendships")
    op.drop_table("friendships")
    op.drop_index("ix_users_bets_won", table_name="users")
    op.execute("DROP INDEX IF EXISTS ix_users_username_lower")
    op.drop_table("users")
