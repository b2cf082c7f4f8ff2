"""Stored sitemap document ORM model keyed by date and shard."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from daily_sitemaps.models.base import Base


class StoredSitemapDocument(Base):
    """One rendered sitemap document for a date partition shard."""

    __tablename__ = "sitemaps"
    __table_args__ = (
        UniqueConstraint("date", "shard", name="uq_sitemaps_date_shard"),
        Index("ix_sitemaps_date", "date"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    shard: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )
    xml: Mapped[str] = mapped_column(Text, nullable=False)
    url_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    lastmod: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


__all__ = ["StoredSitemapDocument"]
