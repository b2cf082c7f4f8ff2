"""create sitemap and generation state tables

Revision ID: 0002_create_sitemap_tables
Revises: 0001_create_content_tables
Create Date: 2026-10-17 00:05:00

"""
from __future__ import annotations

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "0002_create_sitemap_tables"
down_revision: str | None = "0001_create_content_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "sitemaps",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column(
            "shard", sa.Integer(), server_default=sa.text("1"), nullable=False
        ),
        sa.Column("xml", sa.Text(), nullable=False),
        sa.Column(
            "url_count", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("lastmod", sa.DateTime(timezone=True), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date", "shard", name="uq_sitemaps_date_shard"),
    )
    op.create_index("ix_sitemaps_date", "sitemaps", ["date"])

    op.create_table(
        "generation_state",
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "stop_requested",
            sa.Boolean(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    op.drop_table("generation_state")
    op.drop_index("ix_sitemaps_date", table_name="sitemaps")
    op.drop_table("sitemaps")
