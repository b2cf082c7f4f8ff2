"""create content tables

Revision ID: 0001_create_content_tables
Revises:
Create Date: 2026-10-17 00:00:00

"""
from __future__ import annotations

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "0001_create_content_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "articles",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("permalink", sa.String(length=2048), nullable=True),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column(
            "content_type",
            sa.String(length=32),
            server_default=sa.text("'post'"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String(length=32),
            server_default=sa.text("'publish'"),
            nullable=False,
        ),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "modified_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_articles_status_published_at",
        "articles",
        ["status", "published_at"],
    )
    op.create_index("ix_articles_modified_at", "articles", ["modified_at"])

    op.create_table(
        "article_images",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("article_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("title", sa.String(length=2048), nullable=True),
        sa.Column("caption", sa.String(length=2048), nullable=True),
        sa.Column("alt_text", sa.String(length=2048), nullable=True),
        sa.Column("geo_location", sa.String(length=2048), nullable=True),
        sa.Column("license", sa.String(length=2048), nullable=True),
        sa.Column(
            "position",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["article_id"], ["articles.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_article_images_article_id", "article_images", ["article_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_article_images_article_id", table_name="article_images")
    op.drop_table("article_images")
    op.drop_index("ix_articles_modified_at", table_name="articles")
    op.drop_index("ix_articles_status_published_at", table_name="articles")
    op.drop_table("articles")
