"""Persistent interval scheduling for the sitemap generation jobs."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from apscheduler.events import (  # type: ignore[import-untyped]
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_SUBMITTED,
    JobEvent,
)
from apscheduler.job import Job  # type: ignore[import-untyped]
from apscheduler.jobstores.sqlalchemy import (  # type: ignore[import-untyped]
    SQLAlchemyJobStore,
)
from apscheduler.schedulers.asyncio import (  # type: ignore[import-untyped]
    AsyncIOScheduler,
)

from daily_sitemaps.config import Settings

JobCallable = Callable[[], Awaitable[None] | None]

_scheduler_logger = logging.getLogger("daily_sitemaps.scheduler")

_OBSERVED_EVENTS = (
    EVENT_JOB_SUBMITTED | EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES
)


@dataclass(slots=True, frozen=True)
class SchedulerJobState:
    """Snapshot of one registered job."""

    job_id: str
    name: str | None
    trigger: str
    next_run_time: datetime | None
    paused: bool

    @classmethod
    def from_job(cls, job: Job) -> SchedulerJobState:
        next_run_time = getattr(job, "next_run_time", None)
        return cls(
            job_id=job.id,
            name=job.name,
            trigger=str(job.trigger),
            next_run_time=next_run_time,
            paused=next_run_time is None,
        )


def _build_scheduler(jobstore_url: str) -> AsyncIOScheduler:
    # Ticks that pile up while one is running collapse into a single run.
    return AsyncIOScheduler(
        jobstores={"default": SQLAlchemyJobStore(url=jobstore_url)},
        job_defaults={"max_instances": 1, "coalesce": True},
    )


class SchedulerService:
    """Host the generation tick and automatic update jobs.

    Jobs survive restarts through the SQLAlchemy job store. A disabled service
    never starts APScheduler and refuses job operations, which lets manual
    generation run without any background activity.
    """

    def __init__(
        self,
        *,
        enabled: bool,
        jobstore_url: str,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._enabled = enabled
        self._scheduler = scheduler or _build_scheduler(jobstore_url)
        self._scheduler.add_listener(self._on_job_event, _OBSERVED_EVENTS)

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerService:
        return cls(
            enabled=settings.SCHEDULER_ENABLED,
            jobstore_url=settings.SCHEDULER_JOBSTORE_URL,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def running(self) -> bool:
        return self._enabled and bool(self._scheduler.running)

    async def start(self) -> None:
        if not self._enabled:
            _scheduler_logger.info("scheduler_disabled")
        elif not self._scheduler.running:
            self._scheduler.start()
            _scheduler_logger.info(
                "scheduler_started",
                extra={"job_ids": [job.id for job in self._scheduler.get_jobs()]},
            )

    async def shutdown(self) -> None:
        if self.running:
            self._scheduler.shutdown(wait=False)
            _scheduler_logger.info("scheduler_shutdown")

    def add_interval_job(
        self,
        *,
        job_id: str,
        func: JobCallable,
        seconds: int,
        name: str | None = None,
        replace_existing: bool = True,
    ) -> Job:
        self._check_enabled()
        if seconds <= 0:
            raise ValueError("Interval seconds must be greater than zero")

        job = self._scheduler.add_job(
            func,
            "interval",
            seconds=seconds,
            id=job_id,
            name=name,
            replace_existing=replace_existing,
        )
        _scheduler_logger.info(
            "scheduler_job_registered",
            extra={"job_id": job_id, "interval_seconds": seconds},
        )
        return job

    def list_jobs(self) -> list[SchedulerJobState]:
        self._check_enabled()
        return [SchedulerJobState.from_job(job) for job in self._scheduler.get_jobs()]

    def _check_enabled(self) -> None:
        if not self._enabled:
            raise RuntimeError("Scheduler is disabled")

    @staticmethod
    def _on_job_event(event: JobEvent) -> None:
        job_id = getattr(event, "job_id", None)
        if event.code == EVENT_JOB_MAX_INSTANCES:
            _scheduler_logger.warning(
                "scheduler_job_overlap_skipped", extra={"job_id": job_id}
            )
        elif event.code == EVENT_JOB_SUBMITTED:
            _scheduler_logger.debug("scheduler_job_started", extra={"job_id": job_id})
        elif event.code == EVENT_JOB_EXECUTED:
            _scheduler_logger.debug(
                "scheduler_job_succeeded", extra={"job_id": job_id}
            )
        elif event.code == EVENT_JOB_ERROR:
            details: dict[str, Any] = {
                "job_id": job_id,
                "exception": str(getattr(event, "exception", None)),
                "traceback": getattr(event, "traceback", None),
            }
            _scheduler_logger.error("scheduler_job_failed", extra=details)


__all__ = ["SchedulerJobState", "SchedulerService"]
