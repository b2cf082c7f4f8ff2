"""Tests for the scheduled tick and automatic update jobs."""

from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path

import pytest

from daily_sitemaps.config import Settings
from daily_sitemaps.services import generation_pipeline
from daily_sitemaps.services.background_generation import BackgroundGenerationService
from daily_sitemaps.services.generation_pipeline import (
    AUTOMATIC_UPDATE_JOB_ID,
    GENERATION_TICK_JOB_ID,
    JobExecutionMetrics,
    JobRunResult,
    SitemapGenerationPipelineService,
    run_scheduled_generation_tick_job,
    set_generation_pipeline_service,
)
from daily_sitemaps.services.generation_state import GenerationStatus
from daily_sitemaps.services.incremental_generation import (
    IncrementalGenerationService,
)
from daily_sitemaps.services.missing_sitemap_detection import (
    MissingSitemapDetectionService,
)
from daily_sitemaps.services.scheduler import SchedulerService
from daily_sitemaps.services.sitemap_cleanup import SitemapCleanupService
from daily_sitemaps.services.sitemap_generation import SitemapGenerationService
from fakes import (
    InMemoryContentSource,
    InMemoryGenerationStateStore,
    InMemorySitemapRepository,
    make_item,
    utc,
)

TODAY = date(2024, 3, 10)


def _settings(tmp_path: Path, **overrides: object) -> Settings:
    return Settings(  # type: ignore[call-arg]
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'app.sqlite'}",
        SCHEDULER_JOBSTORE_URL=f"sqlite:///{tmp_path / 'jobs.sqlite'}",
        **overrides,
    )


def _pipeline(
    tmp_path: Path,
    *,
    source: InMemoryContentSource,
    repository: InMemorySitemapRepository,
    scheduler_enabled: bool = False,
    **overrides: object,
) -> tuple[SitemapGenerationPipelineService, BackgroundGenerationService]:
    settings = _settings(tmp_path, **overrides)
    generation = SitemapGenerationService(
        content_source=source, repository=repository, clock=lambda: TODAY
    )
    background = BackgroundGenerationService(
        generation_service=generation,
        content_source=source,
        state_store=InMemoryGenerationStateStore(),
        start_year=2024,
        clock=lambda: utc(2024, 3, 10, 12),
    )
    incremental = IncrementalGenerationService(
        detection_service=MissingSitemapDetectionService(
            content_source=source,
            repository=repository,
            start_year=2024,
            clock=lambda: TODAY,
        ),
        generation_service=generation,
    )
    scheduler = SchedulerService(
        enabled=scheduler_enabled, jobstore_url=settings.SCHEDULER_JOBSTORE_URL
    )
    pipeline = SitemapGenerationPipelineService(
        scheduler=scheduler,
        settings=settings,
        background_service=background,
        incremental_service=incremental,
        cleanup_service=SitemapCleanupService(
            content_source=source, repository=repository
        ),
    )
    return pipeline, background


def _metrics(
    pipeline: SitemapGenerationPipelineService, job_id: str
) -> JobExecutionMetrics:
    return next(
        metrics
        for metrics in pipeline.monitoring_snapshot()
        if metrics.job_id == job_id
    )


@pytest.mark.asyncio
async def test_register_jobs_adds_tick_and_automatic_update(tmp_path: Path) -> None:
    pipeline, _ = _pipeline(
        tmp_path,
        source=InMemoryContentSource(),
        repository=InMemorySitemapRepository(),
        scheduler_enabled=True,
    )
    scheduler = pipeline._scheduler

    pipeline.register_jobs()
    await scheduler.start()
    try:
        job_ids = {job.job_id for job in scheduler.list_jobs()}
    finally:
        await scheduler.shutdown()

    assert job_ids == {GENERATION_TICK_JOB_ID, AUTOMATIC_UPDATE_JOB_ID}


@pytest.mark.asyncio
async def test_register_jobs_respects_automatic_update_toggle(tmp_path: Path) -> None:
    pipeline, _ = _pipeline(
        tmp_path,
        source=InMemoryContentSource(),
        repository=InMemorySitemapRepository(),
        scheduler_enabled=True,
        AUTOMATIC_UPDATE_ENABLED=False,
    )
    scheduler = pipeline._scheduler

    pipeline.register_jobs()
    await scheduler.start()
    try:
        job_ids = {job.job_id for job in scheduler.list_jobs()}
    finally:
        await scheduler.shutdown()

    assert job_ids == {GENERATION_TICK_JOB_ID}


def test_register_jobs_is_a_no_op_when_scheduler_disabled(tmp_path: Path) -> None:
    pipeline, _ = _pipeline(
        tmp_path,
        source=InMemoryContentSource(),
        repository=InMemorySitemapRepository(),
    )

    pipeline.register_jobs()

    assert pipeline._scheduler.enabled is False


@pytest.mark.asyncio
async def test_tick_job_records_summary_metrics(tmp_path: Path) -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 3, 1, 9))])
    repository = InMemorySitemapRepository()
    pipeline, background = _pipeline(tmp_path, source=source, repository=repository)
    await background.start_full_generation()
    set_generation_pipeline_service(pipeline)

    await run_scheduled_generation_tick_job()

    metrics = _metrics(pipeline, GENERATION_TICK_JOB_ID)
    assert metrics.total_runs == 1
    assert metrics.successful_runs == 1
    assert metrics.running is False
    assert metrics.last_summary == {
        "status": GenerationStatus.COMPLETED.value,
        "processed_date": "2024-03-01",
        "success": True,
        "generated": 1,
    }
    assert "2024-03-01" in repository.sitemaps


@pytest.mark.asyncio
async def test_jobs_in_the_same_group_do_not_overlap(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    pipeline, _ = _pipeline(
        tmp_path,
        source=InMemoryContentSource(),
        repository=InMemorySitemapRepository(),
    )
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_tick() -> JobRunResult:
        started.set()
        await release.wait()
        return JobRunResult(summary={"status": "running"})

    monkeypatch.setattr(pipeline, "_tick", slow_tick)

    tick_task = asyncio.create_task(pipeline.run_generation_tick_job())
    await started.wait()
    await pipeline.run_automatic_update_job()
    release.set()
    await tick_task

    assert _metrics(pipeline, AUTOMATIC_UPDATE_JOB_ID).overlap_skips == 1
    assert _metrics(pipeline, AUTOMATIC_UPDATE_JOB_ID).total_runs == 0
    assert _metrics(pipeline, GENERATION_TICK_JOB_ID).successful_runs == 1


@pytest.mark.asyncio
async def test_failing_job_is_counted_and_does_not_raise(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    pipeline, _ = _pipeline(
        tmp_path,
        source=InMemoryContentSource(),
        repository=InMemorySitemapRepository(),
    )

    async def broken_tick() -> JobRunResult:
        raise RuntimeError("tick exploded")

    monkeypatch.setattr(pipeline, "_tick", broken_tick)

    await pipeline.run_generation_tick_job()

    metrics = _metrics(pipeline, GENERATION_TICK_JOB_ID)
    assert metrics.failed_runs == 1
    assert metrics.last_error == "tick exploded"


@pytest.mark.asyncio
async def test_automatic_update_generates_and_cleans_up(tmp_path: Path) -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 3, 1, 9))])
    repository = InMemorySitemapRepository()
    await repository.upsert("2024-03-02", "<urlset/>", 1)
    pipeline, background = _pipeline(tmp_path, source=source, repository=repository)

    await pipeline.run_automatic_update_job()

    metrics = _metrics(pipeline, AUTOMATIC_UPDATE_JOB_ID)
    assert metrics.last_summary == {
        "skipped": False,
        "generated": 1,
        "generation_success": True,
        "orphans_removed": 1,
    }
    assert sorted(repository.sitemaps) == ["2024-03-01"]
    assert (await background.progress()).last_check_at == utc(2024, 3, 10, 12)


@pytest.mark.asyncio
async def test_automatic_update_skips_while_background_run_is_active(
    tmp_path: Path,
) -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 3, 1, 9))])
    repository = InMemorySitemapRepository()
    pipeline, background = _pipeline(tmp_path, source=source, repository=repository)
    await background.start_full_generation()

    await pipeline.run_automatic_update_job()

    assert _metrics(pipeline, AUTOMATIC_UPDATE_JOB_ID).last_summary == {
        "skipped": True
    }
    assert repository.upsert_calls == []


@pytest.mark.asyncio
async def test_only_the_automatic_update_is_bounded_by_the_job_timeout(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(generation_pipeline, "JOB_TIMEOUT_SECONDS", 0.01)
    pipeline, _ = _pipeline(
        tmp_path,
        source=InMemoryContentSource(),
        repository=InMemorySitemapRepository(),
    )

    async def slow_job() -> JobRunResult:
        await asyncio.sleep(0.05)
        return JobRunResult(summary={"status": "done"})

    monkeypatch.setattr(pipeline, "_tick", slow_job)
    monkeypatch.setattr(pipeline, "_automatic_update", slow_job)

    await pipeline.run_generation_tick_job()
    await pipeline.run_automatic_update_job()

    assert _metrics(pipeline, GENERATION_TICK_JOB_ID).successful_runs == 1
    assert _metrics(pipeline, AUTOMATIC_UPDATE_JOB_ID).failed_runs == 1


@pytest.mark.asyncio
async def test_monitoring_snapshot_reports_next_run_time(tmp_path: Path) -> None:
    pipeline, _ = _pipeline(
        tmp_path,
        source=InMemoryContentSource(),
        repository=InMemorySitemapRepository(),
        scheduler_enabled=True,
    )
    assert _metrics(pipeline, GENERATION_TICK_JOB_ID).next_run_time is None

    pipeline.register_jobs()
    await pipeline._scheduler.start()
    try:
        tick = _metrics(pipeline, GENERATION_TICK_JOB_ID)
    finally:
        await pipeline._scheduler.shutdown()

    assert tick.next_run_time is not None
