"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "usage_records",
        sa.Column("key", sa.String(), primary_key=True),
        sa.Column("total_bytes", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_bytes >= 0", name="ck_usage_records_total_non_negative"),
    )

    op.create_table(
        "quota_settings",
        sa.Column("key", sa.String(), primary_key=True),
        sa.Column("max_storage_mb", sa.Integer(), nullable=False),
        sa.Column("block_uploads", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("show_progress_bar", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    op.create_table(
        "media_objects",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("object_key", sa.String(), nullable=False),
        sa.Column("mime_type", sa.String(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("object_key", name="uq_media_objects_object_key"),
    )
    op.create_index("ix_media_objects_mime_type", "media_objects", ["mime_type"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("object_id", sa.String(), nullable=True),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("ix_media_objects_mime_type", table_name="media_objects")
    op.drop_table("media_objects")
    op.drop_table("quota_settings")
    op.drop_table("usage_records")
