"""Stored sitemap repository protocol and its SQLAlchemy implementation."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from daily_sitemaps.models import StoredSitemapDocument
from daily_sitemaps.services.sitemap_errors import (
    SitemapRepositoryUnavailableError,
    SitemapValidationError,
)
from daily_sitemaps.utils.dates import ensure_utc, parse_date_stamp

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass(slots=True, frozen=True)
class SitemapDocument:
    """One rendered shard ready to be stored."""

    xml: str
    url_count: int


@dataclass(slots=True, frozen=True)
class StoredSitemap:
    """All stored shards for one date partition."""

    date: str
    documents: tuple[SitemapDocument, ...]
    lastmod: datetime | None
    generated_at: datetime

    @property
    def url_count(self) -> int:
        return sum(document.url_count for document in self.documents)

    @property
    def shard_count(self) -> int:
        return len(self.documents)

    @property
    def xml(self) -> str:
        return self.documents[0].xml


@dataclass(slots=True, frozen=True)
class SitemapIndexRow:
    """Metadata needed to list one stored shard in the root index."""

    date: str
    shard: int
    url_count: int
    lastmod: datetime | None
    generated_at: datetime


class SitemapRepository(Protocol):
    """Idempotent storage of sitemap XML keyed by ``YYYY-MM-DD``."""

    async def get(self, date: str) -> StoredSitemap | None: ...

    async def get_document(self, date: str, shard: int = 1) -> str | None: ...

    async def upsert(
        self,
        date: str,
        xml: str | Sequence[SitemapDocument],
        url_count: int | None = None,
        *,
        lastmod: datetime | None = None,
    ) -> StoredSitemap: ...

    async def delete(self, date: str) -> bool: ...

    async def list_dates(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[str]: ...

    async def list_index_rows(self) -> list[SitemapIndexRow]: ...

    async def update_url_count(
        self, date: str, shard: int, url_count: int
    ) -> bool: ...


def normalize_documents(
    xml: str | Sequence[SitemapDocument],
    url_count: int | None,
) -> tuple[SitemapDocument, ...]:
    """Accept a single XML string with its count or a sequence of shards."""

    if isinstance(xml, str):
        if url_count is None:
            raise SitemapValidationError("url_count is required for a single document")
        documents: tuple[SitemapDocument, ...] = (SitemapDocument(xml, url_count),)
    else:
        documents = tuple(xml)
        if url_count is not None and url_count != sum(
            document.url_count for document in documents
        ):
            raise SitemapValidationError("url_count does not match shard counts")

    if not documents:
        raise SitemapValidationError("At least one sitemap document is required")
    for document in documents:
        if not document.xml:
            raise SitemapValidationError("Sitemap XML cannot be empty")
        if document.url_count < 0:
            raise SitemapValidationError("url_count must not be negative")
    return documents


def validate_date_key(value: str) -> str:
    try:
        parse_date_stamp(value)
    except ValueError as error:
        raise SitemapValidationError(str(error)) from error
    return value


class SqlAlchemySitemapRepository:
    """Persist sitemap shards in the ``sitemaps`` table."""

    def __init__(self, *, session_factory: SessionScopeFactory | None = None) -> None:
        if session_factory is None:
            from daily_sitemaps.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory

    async def get(self, date: str) -> StoredSitemap | None:
        validate_date_key(date)
        async with self._session(operation="get") as session:
            rows = list(
                (
                    await session.scalars(
                        select(StoredSitemapDocument)
                        .where(StoredSitemapDocument.date == date)
                        .order_by(StoredSitemapDocument.shard.asc())
                    )
                ).all()
            )
        if not rows:
            return None
        return StoredSitemap(
            date=date,
            documents=tuple(SitemapDocument(row.xml, row.url_count) for row in rows),
            lastmod=ensure_utc(rows[0].lastmod) if rows[0].lastmod else None,
            generated_at=ensure_utc(rows[0].generated_at),
        )

    async def get_document(self, date: str, shard: int = 1) -> str | None:
        validate_date_key(date)
        async with self._session(operation="get_document") as session:
            return (
                await session.execute(
                    select(StoredSitemapDocument.xml).where(
                        StoredSitemapDocument.date == date,
                        StoredSitemapDocument.shard == shard,
                    )
                )
            ).scalar_one_or_none()

    async def upsert(
        self,
        date: str,
        xml: str | Sequence[SitemapDocument],
        url_count: int | None = None,
        *,
        lastmod: datetime | None = None,
    ) -> StoredSitemap:
        """Replace every shard stored for ``date`` in a single transaction."""

        validate_date_key(date)
        documents = normalize_documents(xml, url_count)
        generated_at = datetime.now(UTC)
        stored_lastmod = ensure_utc(lastmod) if lastmod is not None else None

        async with self._session(operation="upsert") as session:
            await session.execute(
                delete(StoredSitemapDocument).where(
                    StoredSitemapDocument.date == date
                )
            )
            session.add_all(
                StoredSitemapDocument(
                    date=date,
                    shard=shard,
                    xml=document.xml,
                    url_count=document.url_count,
                    lastmod=stored_lastmod,
                    generated_at=generated_at,
                )
                for shard, document in enumerate(documents, start=1)
            )

        return StoredSitemap(
            date=date,
            documents=documents,
            lastmod=stored_lastmod,
            generated_at=generated_at,
        )

    async def delete(self, date: str) -> bool:
        validate_date_key(date)
        async with self._session(operation="delete") as session:
            result = await session.execute(
                delete(StoredSitemapDocument).where(
                    StoredSitemapDocument.date == date
                )
            )
            return bool(result.rowcount)

    async def list_dates(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[str]:
        """Return stored date stamps in ascending order within ``[start, end]``."""

        statement = select(StoredSitemapDocument.date).distinct()
        if start is not None:
            statement = statement.where(
                StoredSitemapDocument.date >= start.isoformat()
            )
        if end is not None:
            statement = statement.where(StoredSitemapDocument.date <= end.isoformat())
        statement = statement.order_by(StoredSitemapDocument.date.asc())

        async with self._session(operation="list_dates") as session:
            return list((await session.scalars(statement)).all())

    async def list_index_rows(self) -> list[SitemapIndexRow]:
        statement = select(
            StoredSitemapDocument.date,
            StoredSitemapDocument.shard,
            StoredSitemapDocument.url_count,
            StoredSitemapDocument.lastmod,
            StoredSitemapDocument.generated_at,
        ).order_by(
            StoredSitemapDocument.date.asc(),
            StoredSitemapDocument.shard.asc(),
        )
        async with self._session(operation="list_index_rows") as session:
            rows = (await session.execute(statement)).all()
        return [
            SitemapIndexRow(
                date=row.date,
                shard=row.shard,
                url_count=row.url_count,
                lastmod=ensure_utc(row.lastmod) if row.lastmod else None,
                generated_at=ensure_utc(row.generated_at),
            )
            for row in rows
        ]

    async def update_url_count(self, date: str, shard: int, url_count: int) -> bool:
        validate_date_key(date)
        async with self._session(operation="update_url_count") as session:
            document = (
                await session.scalars(
                    select(StoredSitemapDocument).where(
                        StoredSitemapDocument.date == date,
                        StoredSitemapDocument.shard == shard,
                    )
                )
            ).one_or_none()
            if document is None:
                return False
            document.url_count = url_count
            return True

    @asynccontextmanager
    async def _session(self, *, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as error:
            raise SitemapRepositoryUnavailableError(
                f"Sitemap repository {operation} failed: {error}"
            ) from error


__all__ = [
    "SitemapDocument",
    "SitemapIndexRow",
    "SitemapRepository",
    "SqlAlchemySitemapRepository",
    "StoredSitemap",
    "normalize_documents",
    "validate_date_key",
]
