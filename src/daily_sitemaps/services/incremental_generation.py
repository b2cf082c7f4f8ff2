"""Regenerate only the partitions that are missing or outdated."""

from __future__ import annotations

import logging

from daily_sitemaps.services.missing_sitemap_detection import (
    MissingSitemapDetectionService,
)
from daily_sitemaps.services.operation_result import SitemapOperationResult
from daily_sitemaps.services.sitemap_errors import (
    ContentSourceError,
    SitemapRepositoryUnavailableError,
)
from daily_sitemaps.services.sitemap_generation import SitemapGenerationService

_incremental_logger = logging.getLogger("daily_sitemaps.generation.incremental")


class IncrementalGenerationService:
    def __init__(
        self,
        *,
        detection_service: MissingSitemapDetectionService,
        generation_service: SitemapGenerationService,
    ) -> None:
        self._detection_service = detection_service
        self._generation_service = generation_service

    async def generate(self, *, source: str = "incremental") -> SitemapOperationResult:
        """Detect missing and outdated days, then generate them right away."""

        try:
            report = await self._detection_service.detect()
        except SitemapRepositoryUnavailableError as error:
            return SitemapOperationResult.failed(
                f"Sitemap storage is unavailable: {error}", "repository_unavailable"
            )
        except ContentSourceError as error:
            return SitemapOperationResult.failed(
                f"Content source is unavailable: {error}", "content_source_unavailable"
            )

        if not report.has_missing_content():
            return SitemapOperationResult.succeeded(0, report.summary())

        _incremental_logger.info(
            "incremental_generation_started",
            extra={
                "missing_dates_count": report.missing_dates_count,
                "dates_needing_updates_count": report.dates_needing_updates_count,
                "source": source,
            },
        )
        return await self._generation_service.generate_for_date_queries(
            report.all_dates_to_generate, force=False, source=source
        )


__all__ = ["IncrementalGenerationService"]
