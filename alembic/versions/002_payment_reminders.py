"""Payment reminders: one row per reminder email sent to a friend who owes money.

The (sender_id, recipient_id, created_at) index serves both the 24-hour
cooldown lookup and the sender's history.

Revision ID: 002_payment_reminders
Revises: 001_initial
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002_payment_reminders"
down_revision: str | None = "001_initial"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the payment_reminders table."""
    op.create_table(
        "payment_reminders",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("sender_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipient_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="payment_reminders_amount_check"),
        sa.CheckConstraint("sender_id <> recipient_id", name="payment_reminders_not_self_check"),
    )
    op.create_index(
        "ix_payment_reminders_sender_recipient_created",
        "payment_reminders",
        ["sender_id", "recipient_id", "created_at"],
    )


def downgrade() -> None:
    """Drop the payment_reminders table."""
    op.drop_index("ix_payment_reminders_sender_recipient_created", table_name="payment_reminders")
    op.drop_table("payment_reminders")
