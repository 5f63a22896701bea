"""Initial schema — places, reviews, versions, actions, alert settings, alert log

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Idempotency relies on these unique constraints; every write path in the
ingestion and alert services is an INSERT ... ON CONFLICT against one of them:
- uq_reviews_natural_key (tenant_id, place_id, external_review_id)
- uq_review_versions_hash (review_id, content_hash)
- uq_alert_log_dedup (tenant_id, alert_type, review_id)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "google_places",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("place_id", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("tenant_id", "place_id", name="uq_places_tenant_place"),
    )
    op.create_index("ix_google_places_tenant_id", "google_places", ["tenant_id"])

    op.create_table(
        "google_reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("place_id", sa.String(255), nullable=False),
        sa.Column("external_review_id", sa.String(255), nullable=False),
        sa.Column("author_name", sa.String(255)),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text()),
        sa.Column("review_published_at", sa.DateTime(timezone=True)),
        sa.Column("source", sa.String(20), nullable=False, server_default="scraping"),
        sa.Column("raw_payload", sa.JSON()),
        sa.Column("is_critical", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("status_updated_at", sa.DateTime(timezone=True)),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("tenant_id", "place_id", "external_review_id", name="uq_reviews_natural_key"),
    )
    op.create_index("ix_reviews_tenant_ingested", "google_reviews", ["tenant_id", "ingested_at"])
    op.create_index("ix_reviews_tenant_published", "google_reviews", ["tenant_id", "review_published_at"])

    op.create_table(
        "google_review_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("review_id", sa.Integer(), sa.ForeignKey("google_reviews.id"), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("snapshot", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("review_id", "content_hash", name="uq_review_versions_hash"),
    )

    op.create_table(
        "google_review_actions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("review_id", sa.Integer(), sa.ForeignKey("google_reviews.id"), nullable=False),
        sa.Column("action_type", sa.String(40), nullable=False),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "ix_review_actions_review", "google_review_actions", ["tenant_id", "review_id", "created_at"]
    )

    op.create_table(
        "google_review_alert_settings",
        sa.Column("tenant_id", sa.String(64), primary_key=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rating_max", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("notify_email", sa.String(1000)),
        sa.Column("cooldown_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "google_review_alert_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("alert_type", sa.String(50), nullable=False),
        sa.Column("review_id", sa.Integer(), sa.ForeignKey("google_reviews.id"), nullable=False),
        sa.Column("payload", sa.JSON()),
        sa.Column("send_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("send_error", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("tenant_id", "alert_type", "review_id", name="uq_alert_log_dedup"),
    )
    op.create_index(
        "ix_alert_log_status", "google_review_alert_log", ["tenant_id", "alert_type", "send_status"]
    )


def downgrade() -> None:
    op.drop_index("ix_alert_log_status", table_name="google_review_alert_log")
    op.drop_table("google_review_alert_log")
    op.drop_table("google_review_alert_settings")
    op.drop_index("ix_review_actions_review", table_name="google_review_actions")
    op.drop_table("google_review_actions")
    op.drop_table("google_review_versions")
    op.drop_index("ix_reviews_tenant_published", table_name="google_reviews")
    op.drop_index("ix_reviews_tenant_ingested", table_name="google_reviews")
    op.drop_table("google_reviews")
    op.drop_index("ix_google_places_tenant_id", table_name="google_places")
    op.drop_table("google_places")
