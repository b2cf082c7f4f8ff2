"""Detect date partitions whose sitemaps are missing or outdated."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from daily_sitemaps.config import Settings
from daily_sitemaps.services.content_source import ContentSource
from daily_sitemaps.services.date_queries import (
    DatePartitionKey,
    iter_days,
    iter_months,
)
from daily_sitemaps.services.sitemap_repository import SitemapRepository, StoredSitemap
from daily_sitemaps.utils.dates import ensure_utc, utc_today

DEFAULT_START_YEAR = 1970

_detection_logger = logging.getLogger("daily_sitemaps.detection")


def is_sitemap_stale(
    stored: StoredSitemap,
    max_modified: datetime | None,
    *,
    tolerance_seconds: int = 0,
) -> bool:
    """Return whether content changed after the stored lastmod plus tolerance.

    Both sides are compared at whole-second precision.
    """

    if max_modified is None:
        return False
    reference = stored.lastmod or stored.generated_at
    newest_content = ensure_utc(max_modified).replace(microsecond=0)
    stored_through = ensure_utc(reference).replace(microsecond=0)
    return newest_content > stored_through + timedelta(seconds=tolerance_seconds)


@dataclass(slots=True, frozen=True)
class MissingSitemapReport:
    """Pure report of partitions needing generation; it triggers nothing."""

    missing_dates: tuple[str, ...]
    dates_needing_updates: tuple[str, ...]
    total_content_count: int
    scanned_through: date

    @property
    def all_dates_to_generate(self) -> tuple[str, ...]:
        return tuple(sorted(set(self.missing_dates) | set(self.dates_needing_updates)))

    @property
    def missing_dates_count(self) -> int:
        return len(self.missing_dates)

    @property
    def dates_needing_updates_count(self) -> int:
        return len(self.dates_needing_updates)

    @property
    def all_dates_count(self) -> int:
        return len(self.all_dates_to_generate)

    def has_missing_content(self) -> bool:
        return self.all_dates_count > 0

    def summary(self) -> str:
        if not self.has_missing_content():
            return "All sitemaps are up to date."
        parts: list[str] = []
        if self.missing_dates:
            parts.append(f"{self.missing_dates_count} missing")
        if self.dates_needing_updates:
            parts.append(f"{self.dates_needing_updates_count} outdated")
        return f"{' and '.join(parts)} sitemaps need generation."

    def to_dict(self) -> dict[str, Any]:
        return {
            "missing_dates": list(self.missing_dates),
            "dates_needing_updates": list(self.dates_needing_updates),
            "all_dates_to_generate": list(self.all_dates_to_generate),
            "missing_dates_count": self.missing_dates_count,
            "dates_needing_updates_count": self.dates_needing_updates_count,
            "all_dates_count": self.all_dates_count,
            "total_content_count": self.total_content_count,
            "scanned_through": self.scanned_through.isoformat(),
            "summary": self.summary(),
        }


class MissingSitemapDetectionService:
    """Walk years, months and days lazily, pruning empty buckets early."""

    def __init__(
        self,
        *,
        content_source: ContentSource,
        repository: SitemapRepository,
        start_year: int = DEFAULT_START_YEAR,
        staleness_tolerance_seconds: int = 0,
        clock: Callable[[], date] | None = None,
    ) -> None:
        if staleness_tolerance_seconds < 0:
            raise ValueError("staleness_tolerance_seconds must not be negative")
        self._content_source = content_source
        self._repository = repository
        self._start_year = start_year
        self._tolerance_seconds = staleness_tolerance_seconds
        self._clock = clock or utc_today

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        content_source: ContentSource,
        repository: SitemapRepository,
    ) -> MissingSitemapDetectionService:
        return cls(
            content_source=content_source,
            repository=repository,
            start_year=settings.SITEMAP_START_YEAR,
            staleness_tolerance_seconds=settings.SITEMAP_STALENESS_TOLERANCE_SECONDS,
        )

    async def detect(
        self,
        *,
        scope: DatePartitionKey | None = None,
    ) -> MissingSitemapReport:
        """Scan ``[start_year-01-01, today]``, optionally narrowed to ``scope``."""

        today = self._clock()
        missing: list[str] = []
        outdated: list[str] = []
        total_content = 0

        for day_key in await self._candidate_days(today=today, scope=scope):
            count = await self._content_source.count_for_partition(day_key)
            if count == 0:
                continue
            total_content += count
            stored = await self._repository.get(day_key.date_stamp)
            if stored is None:
                missing.append(day_key.date_stamp)
                continue
            max_modified = await self._content_source.max_modified_time(day_key)
            if is_sitemap_stale(
                stored, max_modified, tolerance_seconds=self._tolerance_seconds
            ):
                outdated.append(day_key.date_stamp)

        report = MissingSitemapReport(
            missing_dates=tuple(missing),
            dates_needing_updates=tuple(outdated),
            total_content_count=total_content,
            scanned_through=today,
        )
        _detection_logger.info(
            "missing_sitemap_detection_completed",
            extra={
                "missing_dates_count": report.missing_dates_count,
                "dates_needing_updates_count": report.dates_needing_updates_count,
                "total_content_count": total_content,
            },
        )
        return report

    async def _candidate_days(
        self,
        *,
        today: date,
        scope: DatePartitionKey | None,
    ) -> list[DatePartitionKey]:
        if scope is not None and scope.is_day:
            return [scope] if scope.to_date() <= today else []

        years = (
            [scope.year]
            if scope is not None
            else range(self._start_year, today.year + 1)
        )
        days: list[DatePartitionKey] = []
        for year in years:
            if not await self._has_content(DatePartitionKey(year=year)):
                continue
            months = (
                [scope.month]
                if scope is not None and scope.month is not None
                else iter_months(year, today=today)
            )
            for month in months:
                month_key = DatePartitionKey(year=year, month=month)
                if not await self._has_content(month_key):
                    continue
                days.extend(
                    DatePartitionKey(year=year, month=month, day=day)
                    for day in iter_days(year, month, today=today)
                )
        return days

    async def _has_content(self, partition: DatePartitionKey) -> bool:
        return await self._content_source.count_for_partition(partition) > 0


__all__ = [
    "DEFAULT_START_YEAR",
    "MissingSitemapDetectionService",
    "MissingSitemapReport",
    "is_sitemap_stale",
]
