"""Generation orchestrator: date queries in, stored sitemap documents out."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from time import perf_counter
from typing import Literal

from daily_sitemaps.config import Settings
from daily_sitemaps.services.content_source import ContentSource
from daily_sitemaps.services.date_queries import (
    DatePartitionKey,
    DateQuery,
    iter_days,
    iter_months,
    parse_date_queries,
)
from daily_sitemaps.services.events import EventDispatcher, SitemapGenerated
from daily_sitemaps.services.missing_sitemap_detection import is_sitemap_stale
from daily_sitemaps.services.operation_result import SitemapOperationResult
from daily_sitemaps.services.sitemap_content import DEFAULT_MAX_ENTRIES, SitemapContent
from daily_sitemaps.services.sitemap_errors import (
    ContentSourceError,
    InvalidContentItemError,
    InvalidDateQueryError,
    PartitionGenerationFailedError,
    SitemapCapacityExceededError,
    SitemapError,
    SitemapRepositoryUnavailableError,
)
from daily_sitemaps.services.sitemap_formatter import format_sitemap
from daily_sitemaps.services.sitemap_repository import (
    SitemapDocument,
    SitemapRepository,
)
from daily_sitemaps.services.url_entries import UrlEntryBuilder
from daily_sitemaps.utils.dates import utc_today

DEFAULT_PAGE_SIZE = 500

PartitionStatus = Literal["generated", "skipped", "empty", "failed", "unavailable"]

_generation_logger = logging.getLogger("daily_sitemaps.generation")


@dataclass(slots=True, frozen=True)
class PartitionOutcome:
    """Result of processing one day partition."""

    date: str
    status: PartitionStatus
    url_count: int = 0
    shard_count: int = 0
    error: str | None = None


@dataclass(slots=True)
class GenerationTally:
    """Per-run counters summarized into the operation result message."""

    generated: int = 0
    skipped: int = 0
    empty: int = 0
    unavailable: int = 0
    failures: list[PartitionGenerationFailedError] = field(default_factory=list)

    def record(self, outcome: PartitionOutcome) -> None:
        if outcome.status == "generated":
            self.generated += 1
        elif outcome.status == "skipped":
            self.skipped += 1
        elif outcome.status == "empty":
            self.empty += 1
        else:
            if outcome.status == "unavailable":
                self.unavailable += 1
            self.failures.append(
                PartitionGenerationFailedError(outcome.date, outcome.error or "unknown")
            )

    @property
    def only_unavailable(self) -> bool:
        """Every failure came from an unreachable content source."""

        return bool(self.failures) and self.unavailable == len(self.failures)

    def message(self) -> str:
        message = (
            f"{self.generated} sitemaps generated, {self.skipped} skipped, "
            f"{len(self.failures)} failed"
        )
        if self.empty:
            message += f", {self.empty} without content"
        if self.failures:
            failed_dates = ", ".join(failure.date_stamp for failure in self.failures)
            message += f" ({failed_dates})"
        return message


class SitemapGenerationService:
    """Resolve date queries, build documents, and upsert them by date."""

    def __init__(
        self,
        *,
        content_source: ContentSource,
        repository: SitemapRepository,
        entry_builder: UrlEntryBuilder | None = None,
        dispatcher: EventDispatcher | None = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        page_size: int = DEFAULT_PAGE_SIZE,
        staleness_tolerance_seconds: int = 0,
        stylesheet_url: str | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        if max_entries <= 0 or max_entries > DEFAULT_MAX_ENTRIES:
            raise ValueError(
                f"max_entries must be between 1 and {DEFAULT_MAX_ENTRIES}"
            )
        if page_size <= 0:
            raise ValueError("page_size must be greater than zero")
        if staleness_tolerance_seconds < 0:
            raise ValueError("staleness_tolerance_seconds must not be negative")

        self._content_source = content_source
        self._repository = repository
        self._entry_builder = entry_builder or UrlEntryBuilder()
        self._dispatcher = dispatcher or EventDispatcher()
        self._max_entries = max_entries
        self._page_size = page_size
        self._tolerance_seconds = staleness_tolerance_seconds
        self._stylesheet_url = stylesheet_url
        self._clock = clock or utc_today

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        content_source: ContentSource,
        repository: SitemapRepository,
        dispatcher: EventDispatcher | None = None,
    ) -> SitemapGenerationService:
        return cls(
            content_source=content_source,
            repository=repository,
            entry_builder=UrlEntryBuilder.from_settings(settings),
            dispatcher=dispatcher,
            max_entries=settings.SITEMAP_MAX_ENTRIES,
            page_size=settings.SITEMAP_PAGE_SIZE,
            staleness_tolerance_seconds=settings.SITEMAP_STALENESS_TOLERANCE_SECONDS,
            stylesheet_url=settings.SITEMAP_STYLESHEET_URL,
        )

    async def generate_for_date_queries(
        self,
        date_queries: Sequence[DateQuery],
        force: bool = False,
        *,
        source: str = "manual",
    ) -> SitemapOperationResult:
        """Generate every day partition selected by ``date_queries``.

        Up-to-date partitions are skipped unless ``force`` is set. A failing
        partition is recorded and the batch continues; an unavailable
        repository aborts the batch immediately.
        """

        if not date_queries:
            return SitemapOperationResult.failed(
                "No date queries provided.", "no_queries"
            )
        try:
            partitions = parse_date_queries(date_queries)
        except InvalidDateQueryError as error:
            return SitemapOperationResult.failed(str(error), "invalid_date_query")

        tally = GenerationTally()
        today = self._clock()
        # Overlapping selectors such as "2024-02" and "2024-02-29" share days.
        seen: set[str] = set()
        try:
            for partition in partitions:
                async for outcome in self._generate_query(
                    partition, today=today, force=force, source=source, seen=seen
                ):
                    tally.record(outcome)
        except SitemapRepositoryUnavailableError as error:
            _generation_logger.error(
                "sitemap_generation_aborted",
                extra={"error": str(error), "source": source},
            )
            return SitemapOperationResult.failed(
                f"Sitemap storage is unavailable: {error}", "repository_unavailable"
            )

        message = tally.message()
        _generation_logger.info(
            "sitemap_generation_completed",
            extra={
                "generated": tally.generated,
                "skipped": tally.skipped,
                "empty": tally.empty,
                "failed": len(tally.failures),
                "force": force,
                "source": source,
            },
        )
        if tally.failures and tally.generated == 0:
            if tally.only_unavailable:
                return SitemapOperationResult.failed(
                    message, "content_source_unavailable"
                )
            return SitemapOperationResult.failed(message, "generation_failed")
        return SitemapOperationResult.succeeded(tally.generated, message)

    async def delete_for_date_queries(
        self,
        date_queries: Sequence[DateQuery],
    ) -> SitemapOperationResult:
        """Delete stored sitemaps covered by the given selectors."""

        if not date_queries:
            return SitemapOperationResult.failed(
                "No date queries provided.", "no_queries"
            )
        try:
            partitions = parse_date_queries(date_queries)
            deleted = 0
            for partition in partitions:
                stored_dates = await self._repository.list_dates(
                    partition.first_day(), partition.last_day()
                )
                for date_stamp in stored_dates:
                    if await self._repository.delete(date_stamp):
                        deleted += 1
        except InvalidDateQueryError as error:
            return SitemapOperationResult.failed(str(error), "invalid_date_query")
        except SitemapRepositoryUnavailableError as error:
            return SitemapOperationResult.failed(
                f"Sitemap storage is unavailable: {error}", "repository_unavailable"
            )

        _generation_logger.info("sitemaps_deleted", extra={"deleted": deleted})
        return SitemapOperationResult.succeeded(deleted, f"{deleted} sitemaps deleted")

    async def _generate_query(
        self,
        partition: DatePartitionKey,
        *,
        today: date,
        force: bool,
        source: str,
        seen: set[str],
    ) -> AsyncIterator[PartitionOutcome]:
        if partition.is_day:
            if partition.to_date() > today or partition.date_stamp in seen:
                return
            seen.add(partition.date_stamp)
            yield await self._generate_partition(partition, force=force, source=source)
            return

        try:
            days = await self._resolve_days(partition, today=today)
        except ContentSourceError as error:
            _generation_logger.warning(
                "sitemap_query_resolution_failed",
                extra={"query": str(partition), "error": str(error)},
            )
            yield PartitionOutcome(
                date=str(partition), status="unavailable", error=str(error)
            )
            return

        for day in days:
            if day.date_stamp in seen:
                continue
            seen.add(day.date_stamp)
            yield await self._generate_partition(day, force=force, source=source)

    async def _resolve_days(
        self,
        partition: DatePartitionKey,
        *,
        today: date,
    ) -> list[DatePartitionKey]:
        months = (
            [partition.month]
            if partition.month is not None
            else list(iter_months(partition.year, today=today))
        )
        days: list[DatePartitionKey] = []
        for month in months:
            month_key = DatePartitionKey(year=partition.year, month=month)
            if await self._content_source.count_for_partition(month_key) == 0:
                continue
            for day in iter_days(partition.year, month, today=today):
                day_key = DatePartitionKey(year=partition.year, month=month, day=day)
                if await self._content_source.count_for_partition(day_key) > 0:
                    days.append(day_key)
        return days

    async def _generate_partition(
        self,
        partition: DatePartitionKey,
        *,
        force: bool,
        source: str,
    ) -> PartitionOutcome:
        date_stamp = partition.date_stamp
        started_at = perf_counter()
        try:
            stored = await self._repository.get(date_stamp)
            max_modified = await self._content_source.max_modified_time(partition)
            if max_modified is None:
                await self._delete_orphan(date_stamp, exists=stored is not None)
                return PartitionOutcome(date=date_stamp, status="empty")

            if (
                stored is not None
                and not force
                and not is_sitemap_stale(
                    stored, max_modified, tolerance_seconds=self._tolerance_seconds
                )
            ):
                return PartitionOutcome(date=date_stamp, status="skipped")

            shards = await self._build_shards(partition)
            url_count = sum(len(shard) for shard in shards)
            if url_count == 0:
                await self._delete_orphan(date_stamp, exists=stored is not None)
                return PartitionOutcome(date=date_stamp, status="empty")

            documents = [
                SitemapDocument(
                    xml=format_sitemap(shard, stylesheet_url=self._stylesheet_url),
                    url_count=len(shard),
                )
                for shard in shards
            ]
            await self._repository.upsert(date_stamp, documents, lastmod=max_modified)
        except SitemapRepositoryUnavailableError:
            raise
        except ContentSourceError as error:
            _generation_logger.warning(
                "sitemap_partition_source_unavailable",
                extra={"date": date_stamp, "error": str(error), "source": source},
            )
            return PartitionOutcome(
                date=date_stamp, status="unavailable", error=str(error)
            )
        except SitemapError as error:
            failure = PartitionGenerationFailedError(date_stamp, str(error))
            _generation_logger.warning(
                "sitemap_partition_failed",
                extra={"date": date_stamp, "error": failure.reason, "source": source},
            )
            return PartitionOutcome(
                date=date_stamp, status="failed", error=failure.reason
            )

        elapsed = perf_counter() - started_at
        await self._dispatcher.publish(
            SitemapGenerated(
                date=date_stamp,
                url_count=url_count,
                generation_time=elapsed,
                source=source,
                shard_count=len(documents),
            )
        )
        return PartitionOutcome(
            date=date_stamp,
            status="generated",
            url_count=url_count,
            shard_count=len(documents),
        )

    async def _build_shards(self, partition: DatePartitionKey) -> list[SitemapContent]:
        shards = [SitemapContent(max_entries=self._max_entries, shard=1)]
        seen_locations: set[str] = set()
        offset = 0
        while True:
            page = await self._content_source.fetch_page(
                partition, offset=offset, limit=self._page_size
            )
            for item in page:
                try:
                    entry = self._entry_builder.build(item)
                except InvalidContentItemError as error:
                    _generation_logger.warning(
                        "sitemap_item_skipped",
                        extra={"item_id": str(error.item_id), "error": str(error)},
                    )
                    continue
                if entry.loc in seen_locations:
                    continue
                seen_locations.add(entry.loc)
                try:
                    shards[-1].add_entry(entry)
                except SitemapCapacityExceededError:
                    shards.append(
                        SitemapContent(
                            max_entries=self._max_entries, shard=len(shards) + 1
                        )
                    )
                    shards[-1].add_entry(entry)
            if len(page) < self._page_size:
                break
            offset += len(page)
        return [shard for shard in shards if not shard.is_empty()]

    async def _delete_orphan(self, date_stamp: str, *, exists: bool) -> None:
        if not exists:
            return
        await self._repository.delete(date_stamp)
        _generation_logger.info("sitemap_orphan_deleted", extra={"date": date_stamp})


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "GenerationTally",
    "PartitionOutcome",
    "SitemapGenerationService",
]
