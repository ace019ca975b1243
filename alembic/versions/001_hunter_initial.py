"""hunter pipeline tables

Revision ID: 001_hunter
Revises:
Create Date: 2026-03-02

Scans, per-platform statuses, the job queue, raw discovered items and the
discovered_feedback output table.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_hunter"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "hunter_scans",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("platforms", _JSON, nullable=False),
        sa.Column("search_terms", _JSON, nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="running"),
        sa.Column("triggered_by", sa.String(length=255), nullable=True),
        sa.Column("total_collected", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_relevant", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_classified", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_hunter_scans_project_id", "hunter_scans", ["project_id"])
    op.create_index("ix_hunter_scans_project_status", "hunter_scans", ["project_id", "status"])

    op.create_table(
        "hunter_platform_statuses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("scan_id", sa.Uuid(), nullable=False),
        sa.Column("platform", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["scan_id"], ["hunter_scans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("scan_id", "platform", name="uq_hunter_platform_status_scan_platform"),
    )

    op.create_table(
        "hunter_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("scan_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("job_type", sa.String(length=32), nullable=False),
        sa.Column("platform", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("cursor", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("retryable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("not_before", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["scan_id"], ["hunter_scans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_hunter_jobs_claim", "hunter_jobs", ["status", "job_type", "created_at"])
    op.create_index("ix_hunter_jobs_scan_platform", "hunter_jobs", ["scan_id", "platform"])

    op.create_table(
        "hunter_raw_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("scan_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("platform", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("external_url", sa.String(length=2048), nullable=True),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("author", sa.String(length=255), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("raw_metadata", _JSON, nullable=False),
        sa.Column("stage", sa.String(length=32), nullable=False, server_default="discovered"),
        sa.Column("relevance_score", sa.Float(), nullable=True),
        sa.Column("relevance_decision", sa.String(length=32), nullable=True),
        sa.Column("relevance_reason", sa.Text(), nullable=True),
        sa.Column("classification", _JSON, nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["scan_id"], ["hunter_scans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "scan_id", "platform", "external_id", name="uq_hunter_raw_items_scan_platform_ext"
        ),
    )
    op.create_index(
        "ix_hunter_raw_items_batch", "hunter_raw_items", ["scan_id", "platform", "stage"]
    )

    op.create_table(
        "discovered_feedback",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("platform", sa.String(length=64), nullable=False),
        sa.Column("platform_id", sa.String(length=255), nullable=False),
        sa.Column("scan_id", sa.Uuid(), nullable=True),
        sa.Column("platform_url", sa.String(length=2048), nullable=True),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("author_username", sa.String(length=255), nullable=True),
        sa.Column("discovered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("classification", sa.String(length=64), nullable=False),
        sa.Column("classification_confidence", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("classification_reason", sa.Text(), nullable=True),
        sa.Column("sentiment_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("urgency_score", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("tags", _JSON, nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "processed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "project_id",
            "platform",
            "platform_id",
            name="uq_discovered_feedback_project_platform_id",
        ),
    )


def downgrade() -> None:
    op.drop_table("discovered_feedback", if_exists=True)
    op.drop_index("ix_hunter_raw_items_batch", table_name="hunter_raw_items", if_exists=True)
    op.drop_table("hunter_raw_items", if_exists=True)
    op.drop_index("ix_hunter_jobs_scan_platform", table_name="hunter_jobs", if_exists=True)
    op.drop_index("ix_hunter_jobs_claim", table_name="hunter_jobs", if_exists=True)
    op.drop_table("hunter_jobs", if_exists=True)
    op.drop_table("hunter_platform_statuses", if_exists=True)
    op.drop_index("ix_hunter_scans_project_status", table_name="hunter_scans", if_exists=True)
    op.drop_index("ix_hunter_scans_project_id", table_name="hunter_scans", if_exists=True)
    op.drop_table("hunter_scans", if_exists=True)
