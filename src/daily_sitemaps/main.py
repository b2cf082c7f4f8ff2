"""Application entry point for the daily sitemap service."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
import logging
import signal
from typing import Any

from fastapi import FastAPI, Request
from starlette.responses import Response
import uvicorn

from daily_sitemaps import __version__
from daily_sitemaps.api.generation import router as generation_router
from daily_sitemaps.api.sitemaps import router as sitemaps_router
from daily_sitemaps.config import Settings, get_settings
from daily_sitemaps.database import (
    StorageHealthReport,
    close_database,
    initialize_database,
    run_startup_database_health_check,
)
from daily_sitemaps.services.background_generation import BackgroundGenerationService
from daily_sitemaps.services.content_source import DatabaseContentSource
from daily_sitemaps.services.events import EventDispatcher, SitemapStatsListener
from daily_sitemaps.services.generation_pipeline import (
    SitemapGenerationPipelineService,
    set_generation_pipeline_service,
)
from daily_sitemaps.services.generation_state import SqlAlchemyGenerationStateStore
from daily_sitemaps.services.incremental_generation import (
    IncrementalGenerationService,
)
from daily_sitemaps.services.missing_sitemap_detection import (
    MissingSitemapDetectionService,
)
from daily_sitemaps.services.scheduler import SchedulerService
from daily_sitemaps.services.sitemap_cleanup import SitemapCleanupService
from daily_sitemaps.services.sitemap_export import SitemapExportService
from daily_sitemaps.services.sitemap_generation import SitemapGenerationService
from daily_sitemaps.services.sitemap_index import SitemapIndexService
from daily_sitemaps.services.sitemap_repository import SqlAlchemySitemapRepository
from daily_sitemaps.services.sitemap_stats import SitemapStatsService
from daily_sitemaps.services.sitemap_validation import SitemapValidationService
from daily_sitemaps.utils.logging import (
    add_request_logging_middleware,
    setup_logging,
)

__all__ = ["app", "configure_services", "create_app", "main"]

_lifecycle_logger = logging.getLogger("daily_sitemaps.lifecycle")

_HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class _RequestTracker:
    """Count requests in flight so shutdown can wait for them to finish."""

    def __init__(self) -> None:
        self.active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def enter(self) -> None:
        self.active += 1
        self._idle.clear()

    def leave(self) -> None:
        self.active = max(0, self.active - 1)
        if self.active == 0:
            self._idle.set()

    async def drain(self, timeout_seconds: int) -> bool:
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout_seconds)
        except TimeoutError:
            return False
        return True


def configure_services(app: FastAPI, settings: Settings) -> None:
    """Wire the sitemap services onto ``app.state``."""

    content_source = DatabaseContentSource()
    repository = SqlAlchemySitemapRepository()
    dispatcher = EventDispatcher()
    stats_listener = SitemapStatsListener()
    stats_listener.register(dispatcher)

    generation_service = SitemapGenerationService.from_settings(
        settings,
        content_source=content_source,
        repository=repository,
        dispatcher=dispatcher,
    )
    detection_service = MissingSitemapDetectionService.from_settings(
        settings,
        content_source=content_source,
        repository=repository,
    )
    background_service = BackgroundGenerationService(
        generation_service=generation_service,
        content_source=content_source,
        state_store=SqlAlchemyGenerationStateStore(),
        start_year=settings.SITEMAP_START_YEAR,
    )
    incremental_service = IncrementalGenerationService(
        detection_service=detection_service,
        generation_service=generation_service,
    )
    cleanup_service = SitemapCleanupService(
        content_source=content_source,
        repository=repository,
    )

    app.state.sitemap_repository = repository
    app.state.event_dispatcher = dispatcher
    app.state.stats_listener = stats_listener
    app.state.generation_service = generation_service
    app.state.detection_service = detection_service
    app.state.background_service = background_service
    app.state.incremental_service = incremental_service
    app.state.cleanup_service = cleanup_service
    app.state.validation_service = SitemapValidationService(repository=repository)
    app.state.sitemap_index_service = SitemapIndexService.from_settings(
        settings, repository=repository
    )
    app.state.export_service = SitemapExportService.from_settings(
        settings, repository=repository
    )
    app.state.stats_service = SitemapStatsService(repository=repository)


def _build_pipeline(app: FastAPI, settings: Settings) -> SchedulerService:
    scheduler_service = SchedulerService.from_settings(settings)
    pipeline_service = SitemapGenerationPipelineService(
        scheduler=scheduler_service,
        settings=settings,
        background_service=app.state.background_service,
        incremental_service=app.state.incremental_service,
        cleanup_service=app.state.cleanup_service,
    )
    set_generation_pipeline_service(pipeline_service)
    app.state.scheduler_service = scheduler_service
    app.state.generation_pipeline_service = pipeline_service
    return scheduler_service


def _install_signal_handlers(app: FastAPI) -> dict[signal.Signals, Any]:
    """Record the first shutdown signal, then chain to the previous handler."""

    previous: dict[signal.Signals, Any] = {
        handled: signal.getsignal(handled) for handled in _HANDLED_SIGNALS
    }

    def _on_signal(signum: int, frame: object | None) -> None:
        received = signal.Signals(signum)
        if app.state.shutdown_signal is None:
            app.state.shutdown_signal = received.name
            _lifecycle_logger.warning(
                "shutdown_signal_received", extra={"signal": received.name}
            )
        chained = previous[received]
        if callable(chained):
            chained(signum, frame)

    for handled in _HANDLED_SIGNALS:
        signal.signal(handled, _on_signal)
    return previous


def _restore_signal_handlers(previous: dict[signal.Signals, Any]) -> None:
    for handled, handler in previous.items():
        signal.signal(handled, handler)


async def _log_startup_state(app: FastAPI, health: StorageHealthReport) -> None:
    progress = await app.state.background_service.progress()
    stored_dates = await app.state.sitemap_repository.list_dates()
    _lifecycle_logger.info(
        "startup_generation_state",
        extra={
            "status": progress.effective_status.value,
            "mode": progress.mode.value if progress.mode else None,
            "processed_days": progress.processed_days,
            "total_days": progress.total_days,
            "stored_sitemaps": len(stored_dates),
            "storage_healthy": health.is_healthy,
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    app.state.shutdown_signal = None
    configure_services(app, settings)
    scheduler_service = _build_pipeline(app, settings)
    previous_handlers = _install_signal_handlers(app)

    await initialize_database()
    health = await run_startup_database_health_check()
    await _log_startup_state(app, health)
    app.state.generation_pipeline_service.register_jobs()
    await scheduler_service.start()

    try:
        yield
    finally:
        tracker: _RequestTracker = app.state.request_tracker
        drained = await tracker.drain(settings.SHUTDOWN_GRACE_PERIOD_SECONDS)
        await scheduler_service.shutdown()
        stats = app.state.stats_listener.stats
        _lifecycle_logger.info(
            "shutdown_summary",
            extra={
                "sitemaps_generated": stats.sitemaps_generated,
                "urls_generated": stats.urls_generated,
                "graceful_shutdown": drained,
                "inflight_requests": tracker.active,
                "signal": app.state.shutdown_signal,
            },
        )
        _restore_signal_handlers(previous_handlers)
        await close_database()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(title="Daily Sitemaps", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.shutdown_signal = None
    tracker = _RequestTracker()
    app.state.request_tracker = tracker

    @app.middleware("http")
    async def track_inflight_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        tracker.enter()
        try:
            return await call_next(request)
        finally:
            tracker.leave()

    add_request_logging_middleware(app)
    app.include_router(sitemaps_router)
    app.include_router(generation_router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "daily_sitemaps.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=False,
    )
