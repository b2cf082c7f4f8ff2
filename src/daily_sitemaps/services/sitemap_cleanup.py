"""Remove stored sitemaps whose date partition no longer has content."""

from __future__ import annotations

import logging

from daily_sitemaps.services.content_source import ContentSource
from daily_sitemaps.services.date_queries import DatePartitionKey
from daily_sitemaps.services.operation_result import SitemapOperationResult
from daily_sitemaps.services.sitemap_errors import (
    ContentSourceError,
    SitemapRepositoryUnavailableError,
)
from daily_sitemaps.services.sitemap_repository import SitemapRepository
from daily_sitemaps.utils.dates import parse_date_stamp

_cleanup_logger = logging.getLogger("daily_sitemaps.cleanup")


class SitemapCleanupService:
    def __init__(
        self,
        *,
        content_source: ContentSource,
        repository: SitemapRepository,
    ) -> None:
        self._content_source = content_source
        self._repository = repository

    async def find_orphaned_dates(self) -> list[str]:
        orphaned: list[str] = []
        for date_stamp in await self._repository.list_dates():
            partition = DatePartitionKey.from_date(parse_date_stamp(date_stamp))
            if await self._content_source.count_for_partition(partition) == 0:
                orphaned.append(date_stamp)
        return orphaned

    async def cleanup_orphaned_sitemaps(self) -> SitemapOperationResult:
        try:
            orphaned = await self.find_orphaned_dates()
            removed = 0
            for date_stamp in orphaned:
                if await self._repository.delete(date_stamp):
                    removed += 1
        except SitemapRepositoryUnavailableError as error:
            return SitemapOperationResult.failed(
                f"Sitemap storage is unavailable: {error}", "repository_unavailable"
            )
        except ContentSourceError as error:
            return SitemapOperationResult.failed(
                f"Content source is unavailable: {error}", "content_source_unavailable"
            )

        if removed:
            _cleanup_logger.info(
                "orphaned_sitemaps_removed",
                extra={"removed": removed, "dates": orphaned},
            )
        return SitemapOperationResult.succeeded(
            removed, f"{removed} orphaned sitemaps removed"
        )


__all__ = ["SitemapCleanupService"]
