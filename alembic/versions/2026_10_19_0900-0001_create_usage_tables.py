"""create usage_visitors and usage_records tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Append-only chat usage accounting: one visitor row per subject, one
record per granted session or sent message.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "usage_visitors",
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("last_seen_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("subject"),
    )
    op.create_table(
        "usage_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("occurred_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["subject"], ["usage_visitors.subject"], ondelete="CASCADE"
        ),
        sa.CheckConstraint(
            "kind IN ('session', 'message')",
            name="ck_usage_records_kind_valid",
        ),
    )
    op.create_index("ix_usage_records_kind", "usage_records", ["kind"])
    # Composite index for the daily count query
    op.create_index(
        "ix_usage_records_subject_kind_time",
        "usage_records",
        ["subject", "kind", "occurred_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_usage_records_subject_kind_time", table_name="usage_records")
    op.drop_index("ix_usage_records_kind", table_name="usage_records")
    op.drop_table("usage_records")
    op.drop_table("usage_visitors")
