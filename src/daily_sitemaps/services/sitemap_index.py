"""Build the root sitemap index from stored date partitions."""

from __future__ import annotations

import logging

from daily_sitemaps.config import Settings
from daily_sitemaps.services.sitemap_content import (
    DEFAULT_MAX_ENTRIES,
    SitemapIndexCollection,
    SitemapIndexEntry,
)
from daily_sitemaps.services.sitemap_formatter import format_sitemap_index
from daily_sitemaps.services.sitemap_repository import (
    SitemapIndexRow,
    SitemapRepository,
)
from daily_sitemaps.services.url_entries import format_lastmod

logger = logging.getLogger("daily_sitemaps.sitemaps.index")


def sitemap_location(base_url: str, date: str, shard: int = 1) -> str:
    """Public URL of one stored shard; the first shard has no suffix."""

    base = base_url.rstrip("/")
    if shard <= 1:
        return f"{base}/sitemaps/{date}.xml"
    return f"{base}/sitemaps/{date}-{shard}.xml"


class SitemapIndexService:
    """List every stored shard in a ``<sitemapindex>`` document."""

    def __init__(
        self,
        *,
        repository: SitemapRepository,
        base_url: str,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        stylesheet_url: str | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must not be empty")

        self._repository = repository
        self._base_url = base_url.rstrip("/")
        self._max_entries = max_entries
        self._stylesheet_url = stylesheet_url

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        repository: SitemapRepository,
    ) -> SitemapIndexService:
        return cls(
            repository=repository,
            base_url=settings.SITEMAP_BASE_URL,
            stylesheet_url=settings.SITEMAP_STYLESHEET_URL,
        )

    async def build_collection(self) -> SitemapIndexCollection:
        rows = await self._repository.list_index_rows()
        if len(rows) > self._max_entries:
            logger.warning(
                "sitemap_index_truncated",
                extra={"stored_shards": len(rows), "max_entries": self._max_entries},
            )
            rows = rows[-self._max_entries :]

        return SitemapIndexCollection(
            (self._entry_for(row) for row in rows),
            max_entries=self._max_entries,
        )

    async def render(self) -> str:
        return format_sitemap_index(
            await self.build_collection(),
            stylesheet_url=self._stylesheet_url,
        )

    def _entry_for(self, row: SitemapIndexRow) -> SitemapIndexEntry:
        timestamp = row.lastmod or row.generated_at
        return SitemapIndexEntry(
            loc=sitemap_location(self._base_url, row.date, row.shard),
            lastmod=format_lastmod(timestamp),
        )


__all__ = ["SitemapIndexService", "sitemap_location"]
