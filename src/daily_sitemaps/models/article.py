"""Article and attached image ORM models backing the content source."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daily_sitemaps.models.base import Base

PUBLISHED_STATUS = "publish"


class Article(Base):
    """Publishable content item partitioned by its publication date."""

    __tablename__ = "articles"
    __table_args__ = (
        Index("ix_articles_status_published_at", "status", "published_at"),
        Index("ix_articles_modified_at", "modified_at"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    permalink: Mapped[str | None] = mapped_column(String(2048))
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    content_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="post",
        server_default=text("'post'"),
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=PUBLISHED_STATUS,
        server_default=text("'publish'"),
    )
    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    images: Mapped[list[ArticleImage]] = relationship(
        back_populates="article",
        cascade="all, delete-orphan",
        order_by="ArticleImage.position",
    )


class ArticleImage(Base):
    """Image attachment owned by a single article."""

    __tablename__ = "article_images"
    __table_args__ = (Index("ix_article_images_article_id", "article_id"),)

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    article_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    title: Mapped[str | None] = mapped_column(String(2048))
    caption: Mapped[str | None] = mapped_column(String(2048))
    alt_text: Mapped[str | None] = mapped_column(String(2048))
    geo_location: Mapped[str | None] = mapped_column(String(2048))
    license: Mapped[str | None] = mapped_column(String(2048))
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    article: Mapped[Article] = relationship(back_populates="images")


__all__ = ["Article", "ArticleImage", "PUBLISHED_STATUS"]
