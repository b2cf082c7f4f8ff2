"""Content source protocol and its SQLAlchemy-backed implementation."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Collection
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daily_sitemaps.models import PUBLISHED_STATUS, Article, ArticleImage
from daily_sitemaps.services.date_queries import DatePartitionKey
from daily_sitemaps.services.sitemap_errors import ContentSourceError
from daily_sitemaps.utils.dates import ensure_utc, format_date_stamp

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass(slots=True, frozen=True)
class ContentImage:
    """Attachment metadata for one image of a content item."""

    url: str
    title: str | None = None
    caption: str | None = None
    alt_text: str | None = None
    geo_location: str | None = None
    license: str | None = None


@dataclass(slots=True, frozen=True)
class ContentItem:
    """Opaque content item as seen by the sitemap pipeline."""

    id: Any
    permalink: str | None
    published_at: datetime
    modified_at: datetime
    content_type: str = "post"
    title: str = ""
    images: tuple[ContentImage, ...] = field(default=())


class ContentSource(Protocol):
    """Paginated queries over qualifying content for a date partition."""

    async def count_for_partition(self, partition: DatePartitionKey) -> int: ...

    async def max_modified_time(
        self, partition: DatePartitionKey
    ) -> datetime | None: ...

    async def fetch_page(
        self,
        partition: DatePartitionKey,
        *,
        offset: int,
        limit: int,
    ) -> list[ContentItem]: ...

    async def modified_dates_since(self, since: datetime) -> list[str]: ...


class DatabaseContentSource:
    """Serve published articles from the application database."""

    def __init__(
        self,
        *,
        content_types: Collection[str] | None = None,
        session_factory: SessionScopeFactory | None = None,
    ) -> None:
        if session_factory is None:
            from daily_sitemaps.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory
        self._content_types = frozenset(content_types) if content_types else None

    async def count_for_partition(self, partition: DatePartitionKey) -> int:
        statement = self._filtered(
            select(func.count(Article.id)), partition=partition
        )
        async with self._session(operation="count_for_partition") as session:
            return int((await session.execute(statement)).scalar_one())

    async def max_modified_time(self, partition: DatePartitionKey) -> datetime | None:
        statement = self._filtered(
            select(func.max(Article.modified_at)), partition=partition
        )
        async with self._session(operation="max_modified_time") as session:
            value = (await session.execute(statement)).scalar_one_or_none()
        if value is None:
            return None
        return ensure_utc(value)

    async def fetch_page(
        self,
        partition: DatePartitionKey,
        *,
        offset: int,
        limit: int,
    ) -> list[ContentItem]:
        if offset < 0:
            raise ValueError("offset must not be negative")
        if limit <= 0:
            raise ValueError("limit must be greater than zero")

        statement = (
            self._filtered(select(Article), partition=partition)
            .options(selectinload(Article.images))
            .order_by(Article.published_at.asc(), Article.id.asc())
            .offset(offset)
            .limit(limit)
        )
        async with self._session(operation="fetch_page") as session:
            articles = list((await session.scalars(statement)).all())
            return [_to_content_item(article) for article in articles]

    async def modified_dates_since(self, since: datetime) -> list[str]:
        """Return partition stamps of published content modified after ``since``."""

        statement = self._filtered(
            select(Article.published_at).distinct(), partition=None
        ).where(Article.modified_at > ensure_utc(since))
        async with self._session(operation="modified_dates_since") as session:
            published_values = (await session.scalars(statement)).all()

        stamps = {
            format_date_stamp(value.year, value.month, value.day)
            for value in (ensure_utc(published) for published in published_values)
        }
        return sorted(stamps)

    def _filtered(
        self,
        statement: Select[Any],
        *,
        partition: DatePartitionKey | None,
    ) -> Select[Any]:
        statement = statement.where(Article.status == PUBLISHED_STATUS)
        if self._content_types is not None:
            statement = statement.where(Article.content_type.in_(self._content_types))
        if partition is not None:
            start, end = partition.datetime_range()
            statement = statement.where(
                Article.published_at >= start,
                Article.published_at < end,
            )
        return statement

    @asynccontextmanager
    async def _session(self, *, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as error:
            raise ContentSourceError(
                f"Content source {operation} failed: {error}"
            ) from error


def _to_content_item(article: Article) -> ContentItem:
    return ContentItem(
        id=article.id,
        permalink=article.permalink,
        published_at=ensure_utc(article.published_at),
        modified_at=ensure_utc(article.modified_at),
        content_type=article.content_type,
        title=article.title,
        images=tuple(_to_content_image(image) for image in article.images),
    )


def _to_content_image(image: ArticleImage) -> ContentImage:
    return ContentImage(
        url=image.url,
        title=image.title,
        caption=image.caption,
        alt_text=image.alt_text,
        geo_location=image.geo_location,
        license=image.license,
    )


__all__ = [
    "ContentImage",
    "ContentItem",
    "ContentSource",
    "DatabaseContentSource",
]
