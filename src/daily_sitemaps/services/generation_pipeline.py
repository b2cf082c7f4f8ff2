"""Scheduled jobs that drive background generation and automatic updates."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from time import perf_counter
from typing import Any

from daily_sitemaps.config import Settings
from daily_sitemaps.services.background_generation import BackgroundGenerationService
from daily_sitemaps.services.incremental_generation import IncrementalGenerationService
from daily_sitemaps.services.scheduler import SchedulerService
from daily_sitemaps.services.sitemap_cleanup import SitemapCleanupService
from daily_sitemaps.utils.logging import job_context

_job_logger = logging.getLogger("daily_sitemaps.scheduler.jobs")

_pipeline_service: SitemapGenerationPipelineService | None = None

GENERATION_TICK_JOB_ID = "sitemap-generation-tick"
AUTOMATIC_UPDATE_JOB_ID = "sitemap-automatic-update"
GENERATION_LOCK_GROUP = "generation"
JOB_TIMEOUT_SECONDS = 900


@dataclass(slots=True)
class JobExecutionMetrics:
    """In-memory runtime metrics for one scheduled job."""

    job_id: str
    name: str
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    overlap_skips: int = 0
    running: bool = False
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_duration_ms: float | None = None
    last_error: str | None = None
    next_run_time: datetime | None = None
    last_summary: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class JobRunResult:
    summary: dict[str, Any]


class _OverlapProtectedRunner:
    """Run jobs so that jobs sharing a lock group never overlap."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._job_groups: dict[str, str] = {}
        self._metrics: dict[str, JobExecutionMetrics] = {}
        self._timeouts: dict[str, float | None] = {}

    def register(
        self,
        *,
        job_id: str,
        name: str,
        lock_group: str,
        timeout_seconds: float | None,
    ) -> None:
        self._locks.setdefault(lock_group, asyncio.Lock())
        self._job_groups[job_id] = lock_group
        self._timeouts[job_id] = timeout_seconds
        self._metrics.setdefault(job_id, JobExecutionMetrics(job_id=job_id, name=name))

    def snapshot(self) -> list[JobExecutionMetrics]:
        return [
            replace(metrics, last_summary=dict(metrics.last_summary))
            for metrics in self._metrics.values()
        ]

    async def run(
        self,
        *,
        job_id: str,
        run: Callable[[], Awaitable[JobRunResult]],
    ) -> None:
        lock = self._locks[self._job_groups[job_id]]
        metrics = self._metrics[job_id]
        if lock.locked():
            metrics.overlap_skips += 1
            _job_logger.warning(
                "scheduler_job_overlap_skipped", extra={"job_id": job_id}
            )
            return

        async with lock:
            metrics.total_runs += 1
            metrics.running = True
            metrics.last_started_at = datetime.now(UTC)
            started_at = perf_counter()
            try:
                with job_context(job_id):
                    async with asyncio.timeout(self._timeouts[job_id]):
                        job_result = await run()
                metrics.successful_runs += 1
                metrics.last_error = None
                metrics.last_summary = job_result.summary
                _job_logger.info(
                    "scheduler_pipeline_job_completed",
                    extra={"job_id": job_id, **job_result.summary},
                )
            except Exception as error:
                metrics.failed_runs += 1
                metrics.last_error = str(error)
                _job_logger.exception(
                    "scheduler_pipeline_job_failed",
                    extra={"job_id": job_id},
                )
            finally:
                metrics.running = False
                metrics.last_finished_at = datetime.now(UTC)
                metrics.last_duration_ms = round(
                    (perf_counter() - started_at) * 1000, 2
                )


class SitemapGenerationPipelineService:
    """Register and run the tick and automatic-update jobs."""

    def __init__(
        self,
        *,
        scheduler: SchedulerService,
        settings: Settings,
        background_service: BackgroundGenerationService,
        incremental_service: IncrementalGenerationService,
        cleanup_service: SitemapCleanupService,
    ) -> None:
        self._scheduler = scheduler
        self._settings = settings
        self._background_service = background_service
        self._incremental_service = incremental_service
        self._cleanup_service = cleanup_service
        self._runner = _OverlapProtectedRunner()
        self._runner.register(
            job_id=GENERATION_TICK_JOB_ID,
            name="Sitemap Generation Tick",
            lock_group=GENERATION_LOCK_GROUP,
            # A day slower than the timeout would be cancelled and retried forever.
            timeout_seconds=None,
        )
        self._runner.register(
            job_id=AUTOMATIC_UPDATE_JOB_ID,
            name="Automatic Sitemap Update",
            lock_group=GENERATION_LOCK_GROUP,
            timeout_seconds=JOB_TIMEOUT_SECONDS,
        )

    def register_jobs(self) -> None:
        if not self._scheduler.enabled:
            return

        self._scheduler.add_interval_job(
            job_id=GENERATION_TICK_JOB_ID,
            func=run_scheduled_generation_tick_job,
            seconds=self._settings.GENERATION_TICK_INTERVAL_SECONDS,
            name="Scheduled sitemap generation tick",
        )
        if self._settings.AUTOMATIC_UPDATE_ENABLED:
            self._scheduler.add_interval_job(
                job_id=AUTOMATIC_UPDATE_JOB_ID,
                func=run_scheduled_automatic_update_job,
                seconds=self._settings.AUTOMATIC_UPDATE_INTERVAL_SECONDS,
                name="Scheduled automatic sitemap update",
            )

    def monitoring_snapshot(self) -> list[JobExecutionMetrics]:
        """Runner metrics, with the next fire time while the scheduler runs."""

        snapshot = self._runner.snapshot()
        if not self._scheduler.running:
            return snapshot
        next_runs = {
            job.job_id: job.next_run_time for job in self._scheduler.list_jobs()
        }
        for metrics in snapshot:
            metrics.next_run_time = next_runs.get(metrics.job_id)
        return snapshot

    async def run_generation_tick_job(self) -> None:
        await self._runner.run(job_id=GENERATION_TICK_JOB_ID, run=self._tick)

    async def run_automatic_update_job(self) -> None:
        await self._runner.run(
            job_id=AUTOMATIC_UPDATE_JOB_ID,
            run=self._automatic_update,
        )

    async def _tick(self) -> JobRunResult:
        tick = await self._background_service.tick()
        summary: dict[str, Any] = {"status": tick.status.value}
        if tick.processed_date is not None:
            summary["processed_date"] = tick.processed_date
        if tick.result is not None:
            summary["success"] = tick.result.success
            summary["generated"] = tick.result.count
        return JobRunResult(summary=summary)

    async def _automatic_update(self) -> JobRunResult:
        progress = await self._background_service.progress()
        if progress.in_progress:
            _job_logger.debug("automatic_update_skipped_generation_running")
            return JobRunResult(summary={"skipped": True})

        await self._background_service.record_check()
        generation = await self._incremental_service.generate(source="automatic")
        cleanup = await self._cleanup_service.cleanup_orphaned_sitemaps()
        return JobRunResult(
            summary={
                "skipped": False,
                "generated": generation.count,
                "generation_success": generation.success,
                "orphans_removed": cleanup.count,
            }
        )


def set_generation_pipeline_service(service: SitemapGenerationPipelineService) -> None:
    global _pipeline_service
    _pipeline_service = service


def _require_pipeline_service() -> SitemapGenerationPipelineService:
    if _pipeline_service is None:
        raise RuntimeError("Sitemap generation pipeline service is not initialized")

    return _pipeline_service


async def run_scheduled_generation_tick_job() -> None:
    await _require_pipeline_service().run_generation_tick_job()


async def run_scheduled_automatic_update_job() -> None:
    await _require_pipeline_service().run_automatic_update_job()


__all__ = [
    "AUTOMATIC_UPDATE_JOB_ID",
    "GENERATION_TICK_JOB_ID",
    "JobExecutionMetrics",
    "JobRunResult",
    "SitemapGenerationPipelineService",
    "run_scheduled_automatic_update_job",
    "run_scheduled_generation_tick_job",
    "set_generation_pipeline_service",
]
