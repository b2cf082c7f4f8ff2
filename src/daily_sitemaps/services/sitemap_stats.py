"""Aggregate statistics over stored sitemaps: totals, coverage, recent counts."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from daily_sitemaps.services.sitemap_repository import SitemapRepository
from daily_sitemaps.utils.dates import parse_date_stamp, utc_today

DEFAULT_RECENT_DAYS = 7


@dataclass(slots=True, frozen=True)
class SitemapCoverage:
    """How densely stored sitemaps cover the span between oldest and newest."""

    oldest_date: str | None = None
    newest_date: str | None = None
    span_days: int = 0
    covered_days: int = 0
    gap_days: int = 0
    longest_streak: int = 0

    @property
    def coverage_percent(self) -> float:
        if self.span_days == 0:
            return 0.0
        return round(self.covered_days / self.span_days * 100, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "oldest_date": self.oldest_date,
            "newest_date": self.newest_date,
            "span_days": self.span_days,
            "covered_days": self.covered_days,
            "gap_days": self.gap_days,
            "longest_streak": self.longest_streak,
            "coverage_percent": self.coverage_percent,
        }


@dataclass(slots=True, frozen=True)
class SitemapStatsSummary:
    total_sitemaps: int
    total_documents: int
    total_urls: int
    coverage: SitemapCoverage
    recent_url_counts: dict[str, int] = field(default_factory=dict)

    @property
    def average_urls_per_sitemap(self) -> float:
        if self.total_sitemaps == 0:
            return 0.0
        return round(self.total_urls / self.total_sitemaps, 2)


def measure_coverage(date_stamps: list[str]) -> SitemapCoverage:
    """Coverage of the distinct days in ``date_stamps``."""

    days = sorted({parse_date_stamp(stamp) for stamp in date_stamps})
    if not days:
        return SitemapCoverage()

    longest = streak = 1
    for previous, current in zip(days, days[1:]):
        streak = streak + 1 if current - previous == timedelta(days=1) else 1
        longest = max(longest, streak)

    span_days = (days[-1] - days[0]).days + 1
    return SitemapCoverage(
        oldest_date=days[0].isoformat(),
        newest_date=days[-1].isoformat(),
        span_days=span_days,
        covered_days=len(days),
        gap_days=span_days - len(days),
        longest_streak=longest,
    )


class SitemapStatsService:
    """Read-only statistics computed from the stored index rows."""

    def __init__(
        self,
        *,
        repository: SitemapRepository,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or utc_today

    async def collect(
        self, recent_days: int = DEFAULT_RECENT_DAYS
    ) -> SitemapStatsSummary:
        url_counts, documents = await self._url_counts_by_date()
        return SitemapStatsSummary(
            total_sitemaps=len(url_counts),
            total_documents=documents,
            total_urls=sum(url_counts.values()),
            coverage=measure_coverage(list(url_counts)),
            recent_url_counts=self._recent(url_counts, recent_days),
        )

    async def recent_url_counts(
        self, days: int = DEFAULT_RECENT_DAYS
    ) -> dict[str, int]:
        """URL counts for the last ``days`` days, newest first; zero when missing."""

        url_counts, _ = await self._url_counts_by_date()
        return self._recent(url_counts, days)

    async def _url_counts_by_date(self) -> tuple[dict[str, int], int]:
        rows = await self._repository.list_index_rows()
        url_counts: defaultdict[str, int] = defaultdict(int)
        for row in rows:
            url_counts[row.date] += row.url_count
        return dict(url_counts), len(rows)

    def _recent(self, url_counts: dict[str, int], days: int) -> dict[str, int]:
        if days <= 0:
            raise ValueError("days must be greater than zero")
        today = self._clock()
        recent: dict[str, int] = {}
        for offset in range(days):
            stamp = (today - timedelta(days=offset)).isoformat()
            recent[stamp] = url_counts.get(stamp, 0)
        return recent


__all__ = [
    "DEFAULT_RECENT_DAYS",
    "SitemapCoverage",
    "SitemapStatsService",
    "SitemapStatsSummary",
    "measure_coverage",
]
