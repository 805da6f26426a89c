"""create analytics aggregates

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 15:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "analytics_aggregates",
        sa.Column("scope", sa.String(length=16), nullable=False),
        sa.Column("bucket", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column("event_count", sa.Integer(), nullable=False),
        sa.Column("last_event_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("scope", "bucket", "event_type"),
    )
    op.create_index(
        "ix_analytics_aggregates_expires_at",
        "analytics_aggregates",
        ["expires_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_analytics_aggregates_expires_at", table_name="analytics_aggregates")
    op.drop_table("analytics_aggregates")
