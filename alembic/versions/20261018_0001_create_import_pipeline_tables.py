"""create import pipeline tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _jsonb() -> postgresql.JSONB:
    return postgresql.JSONB(astext_type=sa.Text())


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "import_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_id", sa.String(length=64), nullable=False),
        sa.Column("job_type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("total_records", sa.Integer(), nullable=False),
        sa.Column("processed_records", sa.Integer(), nullable=False),
        sa.Column("success_records", sa.Integer(), nullable=False),
        sa.Column("error_records", sa.Integer(), nullable=False),
        sa.Column("parameters", _jsonb(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_jobs_source_id", "import_jobs", ["source_id"], unique=False)
    op.create_index("ix_import_jobs_status", "import_jobs", ["status"], unique=False)
    op.create_index("ix_import_jobs_job_type", "import_jobs", ["job_type"], unique=False)
    op.create_index("ix_import_jobs_created_at", "import_jobs", ["created_at"], unique=False)

    op.create_table(
        "import_batches",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("batch_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("item_count", sa.Integer(), nullable=False),
        sa.Column("error_details", _jsonb(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["job_id"], ["import_jobs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("job_id", "batch_number", name="uq_import_batches_job_batch_number"),
    )
    op.create_index("ix_import_batches_job_id", "import_batches", ["job_id"], unique=False)
    op.create_index("ix_import_batches_status", "import_batches", ["status"], unique=False)

    op.create_table(
        "restaurants",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("state", sa.String(length=120), nullable=True),
        sa.Column("postal_code", sa.String(length=32), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=True),
        sa.Column("country_code", sa.String(length=8), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("website", sa.String(length=500), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("cuisine_type", sa.String(length=120), nullable=True),
        sa.Column("price_range", sa.String(length=32), nullable=True),
        sa.Column("opening_hours", _jsonb(), nullable=True),
        sa.Column("features", _jsonb(), nullable=True),
        sa.Column("image_url", sa.String(length=1000), nullable=True),
        sa.Column("logo_url", sa.String(length=1000), nullable=True),
        sa.Column("data_source", sa.String(length=32), nullable=False),
        sa.Column("external_source_count", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_restaurants_slug", "restaurants", ["slug"], unique=False)
    op.create_index("ix_restaurants_city", "restaurants", ["city"], unique=False)
    op.create_index("ix_restaurants_country_code", "restaurants", ["country_code"], unique=False)

    op.create_table(
        "dishes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("restaurant_id", sa.String(length=64), nullable=False),
        sa.Column("restaurant_name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("image_url", sa.String(length=1000), nullable=True),
        sa.Column("is_vegetarian", sa.Boolean(), nullable=True),
        sa.Column("spicy_level", sa.Integer(), nullable=True),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("country_code", sa.String(length=8), nullable=True),
        sa.Column("data_source", sa.String(length=32), nullable=False),
        sa.Column("external_source_count", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dishes_slug", "dishes", ["slug"], unique=False)
    op.create_index("ix_dishes_restaurant_id", "dishes", ["restaurant_id"], unique=False)

    op.create_table(
        "import_links",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_id", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("external_menu_id", sa.String(length=255), nullable=True),
        sa.Column("raw_data", _jsonb(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("match_method", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("import_date", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "entity_type",
            "source_id",
            "external_id",
            name="uq_import_links_external_identity",
        ),
        sa.UniqueConstraint(
            "entity_type",
            "entity_id",
            "source_id",
            name="uq_import_links_entity_source",
        ),
    )
    op.create_index("ix_import_links_entity", "import_links", ["entity_type", "entity_id"], unique=False)

    op.create_table(
        "analytics_records",
        sa.Column("event_id", sa.String(length=128), nullable=False),
        sa.Column("restaurant_id", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column("event_source", sa.String(length=120), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("data", _jsonb(), nullable=True),
        sa.Column("event_metadata", _jsonb(), nullable=True),
        sa.Column("ttl", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index(
        "ix_analytics_records_restaurant_timestamp",
        "analytics_records",
        ["restaurant_id", "timestamp"],
        unique=False,
    )
    op.create_index("ix_analytics_records_event_type", "analytics_records", ["event_type"], unique=False)
    op.create_index("ix_analytics_records_ttl", "analytics_records", ["ttl"], unique=False)

    op.create_table(
        "ranking_interactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("restaurant_id", sa.String(length=64), nullable=False),
        sa.Column("restaurant_name", sa.String(length=255), nullable=False),
        sa.Column("menu_item", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("rank_position", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "restaurant_id",
            "menu_item",
            name="uq_ranking_interactions_user_restaurant_item",
        ),
    )
    op.create_index("ix_ranking_interactions_menu_item", "ranking_interactions", ["menu_item"], unique=False)
    op.create_index(
        "ix_ranking_interactions_user_menu_item",
        "ranking_interactions",
        ["user_id", "menu_item"],
        unique=False,
    )

    op.create_table(
        "event_outbox",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source", sa.String(length=120), nullable=False),
        sa.Column("detail_type", sa.String(length=120), nullable=False),
        sa.Column("detail", _jsonb(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_event_outbox_status_created_at", "event_outbox", ["status", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_event_outbox_status_created_at", table_name="event_outbox")
    op.drop_table("event_outbox")
    op.drop_index("ix_ranking_interactions_user_menu_item", table_name="ranking_interactions")
    op.drop_index("ix_ranking_interactions_menu_item", table_name="ranking_interactions")
    op.drop_table("ranking_interactions")
    op.drop_index("ix_analytics_records_ttl", table_name="analytics_records")
    op.drop_index("ix_analytics_records_event_type", table_name="analytics_records")
    op.drop_index("ix_analytics_records_restaurant_timestamp", table_name="analytics_records")
    op.drop_table("analytics_records")
    op.drop_index("ix_import_links_entity", table_name="import_links")
    op.drop_table("import_links")
    op.drop_index("ix_dishes_restaurant_id", table_name="dishes")
    op.drop_index("ix_dishes_slug", table_name="dishes")
    op.drop_table("dishes")
    op.drop_index("ix_restaurants_country_code", table_name="restaurants")
    op.drop_index("ix_restaurants_city", table_name="restaurants")
    op.drop_index("ix_restaurants_slug", table_name="restaurants")
    op.drop_table("restaurants")
    op.drop_index("ix_import_batches_status", table_name="import_batches")
    op.drop_index("ix_import_batches_job_id", table_name="import_batches")
    op.drop_table("import_batches")
    op.drop_index("ix_import_jobs_created_at", table_name="import_jobs")
    op.drop_index("ix_import_jobs_job_type", table_name="import_jobs")
    op.drop_index("ix_import_jobs_status", table_name="import_jobs")
    op.drop_index("ix_import_jobs_source_id", table_name="import_jobs")
    op.drop_table("import_jobs")
