"""Create media attachments table.

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "media_attachments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=False),
        sa.Column("file_name", sa.String(length=512), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("extracted_text", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default="processing",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('processing', 'completed', 'failed')",
            name="ck_media_attachments_status",
        ),
        sa.CheckConstraint(
            "kind IN ('audio', 'image', 'document')",
            name="ck_media_attachments_kind",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_media_attachments_parent_id",
        "media_attachments",
        ["parent_id"],
    )
    op.create_index(
        "ix_media_attachments_owner_parent",
        "media_attachments",
        ["owner_id", "parent_id"],
    )
    op.create_index(
        "ix_media_attachments_status_created_at",
        "media_attachments",
        ["status", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_media_attachments_status_created_at",
        table_name="media_attachments",
    )
    op.drop_index(
        "ix_media_attachments_owner_parent",
        table_name="media_attachments",
    )
    op.drop_index(
        "ix_media_attachments_parent_id",
        table_name="media_attachments",
    )
    op.drop_table("media_attachments")
