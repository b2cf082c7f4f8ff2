"""Resumable background generation driven by scheduled ticks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime

from daily_sitemaps.services.content_source import ContentSource
from daily_sitemaps.services.date_queries import (
    DatePartitionKey,
    iter_days,
    iter_months,
)
from daily_sitemaps.services.generation_state import (
    GenerationMode,
    GenerationProgress,
    GenerationStateStore,
    GenerationStatus,
)
from daily_sitemaps.services.missing_sitemap_detection import DEFAULT_START_YEAR
from daily_sitemaps.services.operation_result import SitemapOperationResult
from daily_sitemaps.services.sitemap_errors import ContentSourceError
from daily_sitemaps.services.sitemap_generation import SitemapGenerationService
from daily_sitemaps.utils.dates import parse_date_stamp

_background_logger = logging.getLogger("daily_sitemaps.generation.background")

# The popped unit is retried on the next tick instead of being counted as failed.
_DEFERRING_ERROR_CODES = frozenset(
    {"repository_unavailable", "content_source_unavailable"}
)


@dataclass(slots=True, frozen=True)
class TickResult:
    """What a single tick did and the progress it persisted."""

    progress: GenerationProgress
    processed_date: str | None = None
    result: SitemapOperationResult | None = None
    message: str = ""

    @property
    def status(self) -> GenerationStatus:
        return self.progress.effective_status


class BackgroundGenerationService:
    """State machine over ``GenerationProgress``; one day per tick.

    IDLE -> RUNNING -> COMPLETED, or RUNNING -> HALTING -> HALTED when a halt
    is requested. The halt flag is only honoured at the start of a tick.
    """

    def __init__(
        self,
        *,
        generation_service: SitemapGenerationService,
        content_source: ContentSource,
        state_store: GenerationStateStore,
        start_year: int = DEFAULT_START_YEAR,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._generation_service = generation_service
        self._content_source = content_source
        self._state_store = state_store
        self._start_year = start_year
        self._clock = clock or (lambda: datetime.now(UTC))

    async def progress(self) -> GenerationProgress:
        return await self._state_store.load()

    async def start_full_generation(self) -> SitemapOperationResult:
        """Queue every year from the start year to the current one, newest first."""

        progress = await self._state_store.load()
        refused = _refuse_start(progress)
        if refused is not None:
            return refused

        now = self._clock()
        years = tuple(range(now.year, self._start_year - 1, -1))
        started = _fresh_run(progress, mode=GenerationMode.FULL, now=now).evolve(
            years_to_process=years
        )
        await self._state_store.save(started, stop_requested=False)
        _background_logger.info(
            "generation_started",
            extra={"mode": GenerationMode.FULL.value, "years": len(years)},
        )
        return SitemapOperationResult.succeeded(
            len(years), f"Full sitemap generation queued for {len(years)} years."
        )

    async def start_latest_generation(
        self,
        *,
        since: datetime | None = None,
    ) -> SitemapOperationResult:
        """Queue only days whose content changed since the last recorded run."""

        progress = await self._state_store.load()
        refused = _refuse_start(progress)
        if refused is not None:
            return refused

        reference = since or progress.last_run_at or progress.last_update_at
        if reference is None:
            _background_logger.info("generation_latest_without_history")
            return await self.start_full_generation()

        now = self._clock()
        try:
            changed_dates = await self._content_source.modified_dates_since(reference)
        except ContentSourceError as error:
            return SitemapOperationResult.failed(
                f"Content source is unavailable: {error}", "content_source_unavailable"
            )

        today_stamp = now.date().isoformat()
        dates = tuple(
            sorted(
                (stamp for stamp in changed_dates if stamp <= today_stamp),
                reverse=True,
            )
        )
        if not dates:
            await self._state_store.save(progress.evolve(last_check_at=now))
            return SitemapOperationResult.succeeded(0, "All sitemaps are up to date.")

        started = _fresh_run(progress, mode=GenerationMode.LATEST, now=now).evolve(
            dates_to_process=dates,
            total_days=len(dates),
            last_check_at=now,
        )
        await self._state_store.save(started, stop_requested=False)
        _background_logger.info(
            "generation_started",
            extra={"mode": GenerationMode.LATEST.value, "dates": len(dates)},
        )
        return SitemapOperationResult.succeeded(
            len(dates), f"Sitemap generation queued for {len(dates)} updated days."
        )

    async def request_halt(self) -> SitemapOperationResult:
        progress = await self._state_store.load()
        if not progress.in_progress:
            return SitemapOperationResult.failed(
                "No sitemap generation is running.", "not_running"
            )
        await self._state_store.set_stop_requested(True)
        _background_logger.info("generation_halt_requested")
        return SitemapOperationResult.succeeded(
            0, "Sitemap generation will halt before the next unit."
        )

    async def resume(self) -> SitemapOperationResult:
        progress = await self._state_store.load()
        if progress.status is not GenerationStatus.HALTED:
            return SitemapOperationResult.failed(
                "Sitemap generation is not halted.", "not_halted"
            )
        resumed = progress.evolve(status=GenerationStatus.RUNNING, finished_at=None)
        await self._state_store.save(resumed, stop_requested=False)
        _background_logger.info("generation_resumed")
        return SitemapOperationResult.succeeded(
            resumed.remaining_days, "Sitemap generation resumed."
        )

    async def reset(self) -> SitemapOperationResult:
        """Clear queues and counters; timestamps of earlier runs are kept."""

        progress = await self._state_store.load()
        if progress.in_progress:
            return SitemapOperationResult.failed(
                "Halt the running generation before resetting it.",
                "generation_in_progress",
            )
        cleared = GenerationProgress(
            last_check_at=progress.last_check_at,
            last_update_at=progress.last_update_at,
            last_run_at=progress.last_run_at,
        )
        await self._state_store.save(cleared, stop_requested=False)
        _background_logger.info("generation_reset")
        return SitemapOperationResult.succeeded(0, "Sitemap generation state reset.")

    async def record_check(self) -> GenerationProgress:
        progress = await self._state_store.load()
        checked = progress.evolve(last_check_at=self._clock())
        await self._state_store.save(checked)
        return checked

    async def tick(self) -> TickResult:
        """Honour a pending halt or process exactly one day of the queue."""

        progress = await self._state_store.load()
        if not progress.in_progress:
            return TickResult(progress=progress, message="No generation is running.")

        if progress.stop_requested:
            halted = progress.evolve(
                status=GenerationStatus.HALTED,
                stop_requested=False,
                current_date=None,
            )
            await self._state_store.save(halted, stop_requested=False)
            _background_logger.info(
                "generation_halted",
                extra={"processed_days": halted.processed_days},
            )
            return TickResult(progress=halted, message="Sitemap generation halted.")

        today = self._clock().date()
        try:
            partition, advanced = await self._next_unit(progress, today=today)
        except ContentSourceError as error:
            failed = progress.evolve(last_error=str(error))
            await self._state_store.save(failed)
            _background_logger.warning(
                "generation_tick_deferred", extra={"error": str(error)}
            )
            return TickResult(progress=failed, message=str(error))

        if partition is None:
            completed = await self._complete(advanced)
            return TickResult(
                progress=completed, message="Sitemap generation completed."
            )

        mode = advanced.mode.value if advanced.mode else "background"
        result = await self._generation_service.generate_for_date_queries(
            [partition], force=advanced.force, source=f"background-{mode}"
        )
        if result.error_code in _DEFERRING_ERROR_CODES:
            deferred = progress.evolve(last_error=result.message)
            await self._state_store.save(deferred)
            _background_logger.warning(
                "generation_tick_deferred",
                extra={"date": partition.date_stamp, "error": result.message},
            )
            return TickResult(
                progress=deferred,
                processed_date=None,
                result=result,
                message=result.message,
            )

        now = self._clock()
        updated = advanced.evolve(
            current_date=partition.date_stamp,
            processed_days=advanced.processed_days + 1,
            generated_days=advanced.generated_days + result.count,
            failed_days=advanced.failed_days + (0 if result.success else 1),
            last_update_at=now if result.count else advanced.last_update_at,
            last_error=None if result.success else result.message,
        )
        if updated.has_pending_units:
            await self._state_store.save(updated)
        else:
            updated = await self._complete(updated)

        _background_logger.info(
            "generation_tick_processed",
            extra={
                "date": partition.date_stamp,
                "success": result.success,
                "generated": result.count,
                "processed_days": updated.processed_days,
                "status": updated.effective_status.value,
            },
        )
        return TickResult(
            progress=updated,
            processed_date=partition.date_stamp,
            result=result,
            message=result.message,
        )

    async def _next_unit(
        self,
        progress: GenerationProgress,
        *,
        today: date,
    ) -> tuple[DatePartitionKey | None, GenerationProgress]:
        while True:
            if progress.dates_to_process:
                stamp, *rest = progress.dates_to_process
                partition = DatePartitionKey.from_date(parse_date_stamp(stamp))
                return partition, progress.evolve(dates_to_process=tuple(rest))

            if (
                progress.days_to_process
                and progress.current_year is not None
                and progress.current_month is not None
            ):
                day, *rest_days = progress.days_to_process
                partition = DatePartitionKey(
                    year=progress.current_year,
                    month=progress.current_month,
                    day=day,
                )
                return partition, progress.evolve(days_to_process=tuple(rest_days))

            if progress.months_to_process and progress.current_year is not None:
                month, *rest_months = progress.months_to_process
                days = await self._days_with_content(
                    progress.current_year, month, today=today
                )
                progress = progress.evolve(
                    months_to_process=tuple(rest_months),
                    current_month=month,
                    days_to_process=days,
                    total_days=progress.total_days + len(days),
                )
                continue

            if progress.years_to_process:
                year, *rest_years = progress.years_to_process
                months = await self._months_with_content(year, today=today)
                progress = progress.evolve(
                    years_to_process=tuple(rest_years),
                    current_year=year,
                    current_month=None,
                    months_to_process=months,
                    days_to_process=(),
                )
                continue

            return None, progress

    async def _months_with_content(self, year: int, *, today: date) -> tuple[int, ...]:
        if not await self._has_content(DatePartitionKey(year=year)):
            return ()
        months: list[int] = []
        for month in reversed(list(iter_months(year, today=today))):
            if await self._has_content(DatePartitionKey(year=year, month=month)):
                months.append(month)
        return tuple(months)

    async def _days_with_content(
        self,
        year: int,
        month: int,
        *,
        today: date,
    ) -> tuple[int, ...]:
        days: list[int] = []
        for day in reversed(list(iter_days(year, month, today=today))):
            if await self._has_content(
                DatePartitionKey(year=year, month=month, day=day)
            ):
                days.append(day)
        return tuple(days)

    async def _has_content(self, partition: DatePartitionKey) -> bool:
        return await self._content_source.count_for_partition(partition) > 0

    async def _complete(self, progress: GenerationProgress) -> GenerationProgress:
        now = self._clock()
        completed = progress.evolve(
            status=GenerationStatus.COMPLETED,
            years_to_process=(),
            months_to_process=(),
            days_to_process=(),
            dates_to_process=(),
            current_year=None,
            current_month=None,
            current_date=None,
            finished_at=now,
            last_run_at=now,
        )
        await self._state_store.save(completed, stop_requested=False)
        _background_logger.info(
            "generation_completed",
            extra={
                "processed_days": completed.processed_days,
                "generated_days": completed.generated_days,
                "failed_days": completed.failed_days,
            },
        )
        return completed


def _refuse_start(progress: GenerationProgress) -> SitemapOperationResult | None:
    """A new run may not replace a running or halted queue."""

    if progress.in_progress:
        return SitemapOperationResult.failed(
            "Sitemap generation is already in progress.", "generation_in_progress"
        )
    if progress.status is GenerationStatus.HALTED:
        return SitemapOperationResult.failed(
            "Sitemap generation is halted; resume or reset it first.",
            "generation_halted",
        )
    return None


def _fresh_run(
    previous: GenerationProgress,
    *,
    mode: GenerationMode,
    now: datetime,
) -> GenerationProgress:
    return GenerationProgress(
        status=GenerationStatus.RUNNING,
        mode=mode,
        force=True,
        started_at=now,
        last_check_at=previous.last_check_at,
        last_update_at=previous.last_update_at,
        last_run_at=previous.last_run_at,
    )


__all__ = ["BackgroundGenerationService", "TickResult"]
