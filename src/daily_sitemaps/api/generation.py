"""Generation control API routes."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from daily_sitemaps.schemas.generation import (
    DateQueryRequest,
    GenerationProgressResponse,
    GenerationStatsResponse,
    JobMonitoringResponse,
    LatestGenerationRequest,
    MissingSitemapReportResponse,
    OperationResultResponse,
    SitemapCoverageResponse,
)
from daily_sitemaps.services.background_generation import BackgroundGenerationService
from daily_sitemaps.services.date_queries import DatePartitionKey
from daily_sitemaps.services.events import SitemapStatsListener
from daily_sitemaps.services.generation_pipeline import (
    SitemapGenerationPipelineService,
)
from daily_sitemaps.services.generation_state import GenerationProgress
from daily_sitemaps.services.incremental_generation import (
    IncrementalGenerationService,
)
from daily_sitemaps.services.missing_sitemap_detection import (
    MissingSitemapDetectionService,
)
from daily_sitemaps.services.operation_result import SitemapOperationResult
from daily_sitemaps.services.sitemap_errors import (
    ContentSourceError,
    InvalidDateQueryError,
    SitemapRepositoryUnavailableError,
)
from daily_sitemaps.services.sitemap_generation import SitemapGenerationService
from daily_sitemaps.services.sitemap_stats import SitemapStatsService

router = APIRouter(prefix="/api/generation", tags=["generation"])

_ERROR_STATUS_CODES = {
    "no_queries": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_date_query": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "generation_in_progress": status.HTTP_409_CONFLICT,
    "not_running": status.HTTP_409_CONFLICT,
    "not_halted": status.HTTP_409_CONFLICT,
    "generation_halted": status.HTTP_409_CONFLICT,
    "repository_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "content_source_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "generation_failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def operation_response(result: SitemapOperationResult) -> OperationResultResponse:
    """Return the payload of a successful result or raise with its error code."""

    if not result.success:
        raise HTTPException(
            status_code=_ERROR_STATUS_CODES.get(
                result.error_code or "", status.HTTP_400_BAD_REQUEST
            ),
            detail=result.to_dict(),
        )
    return OperationResultResponse(**result.to_dict())


def raise_unavailable(error: Exception) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(error),
    ) from error


def _state_service(
    request: Request, attribute: str, expected: type[Any], label: str
) -> Any:
    service = getattr(request.app.state, attribute, None)
    if isinstance(service, expected):
        return service

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{label} is unavailable",
    )


def _get_background_service(request: Request) -> BackgroundGenerationService:
    return _state_service(
        request,
        "background_service",
        BackgroundGenerationService,
        "Background generation service",
    )


def _get_generation_service(request: Request) -> SitemapGenerationService:
    return _state_service(
        request,
        "generation_service",
        SitemapGenerationService,
        "Sitemap generation service",
    )


def _get_incremental_service(request: Request) -> IncrementalGenerationService:
    return _state_service(
        request,
        "incremental_service",
        IncrementalGenerationService,
        "Incremental generation service",
    )


def _get_detection_service(request: Request) -> MissingSitemapDetectionService:
    return _state_service(
        request,
        "detection_service",
        MissingSitemapDetectionService,
        "Missing sitemap detection service",
    )


def _get_stats_listener(request: Request) -> SitemapStatsListener:
    return _state_service(
        request, "stats_listener", SitemapStatsListener, "Generation statistics"
    )


def _get_stats_service(request: Request) -> SitemapStatsService:
    return _state_service(
        request, "stats_service", SitemapStatsService, "Sitemap statistics"
    )


def _progress_response(progress: GenerationProgress) -> GenerationProgressResponse:
    return GenerationProgressResponse(**progress.to_dict())


async def _load_progress(
    background_service: BackgroundGenerationService,
) -> GenerationProgress:
    try:
        return await background_service.progress()
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)


@router.get("", response_model=GenerationProgressResponse)
async def get_generation_progress(
    background_service: BackgroundGenerationService = Depends(
        _get_background_service
    ),
) -> GenerationProgressResponse:
    return _progress_response(await _load_progress(background_service))


@router.post("/full", response_model=OperationResultResponse)
async def start_full_generation(
    background_service: BackgroundGenerationService = Depends(
        _get_background_service
    ),
) -> OperationResultResponse:
    try:
        result = await background_service.start_full_generation()
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return operation_response(result)


@router.post("/latest", response_model=OperationResultResponse)
async def start_latest_generation(
    payload: LatestGenerationRequest | None = None,
    background_service: BackgroundGenerationService = Depends(
        _get_background_service
    ),
) -> OperationResultResponse:
    since = payload.since if payload is not None else None
    try:
        result = await background_service.start_latest_generation(since=since)
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return operation_response(result)


@router.post("/halt", response_model=OperationResultResponse)
async def halt_generation(
    background_service: BackgroundGenerationService = Depends(
        _get_background_service
    ),
) -> OperationResultResponse:
    try:
        result = await background_service.request_halt()
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return operation_response(result)


@router.post("/resume", response_model=OperationResultResponse)
async def resume_generation(
    background_service: BackgroundGenerationService = Depends(
        _get_background_service
    ),
) -> OperationResultResponse:
    try:
        result = await background_service.resume()
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return operation_response(result)


@router.post("/reset", response_model=OperationResultResponse)
async def reset_generation(
    background_service: BackgroundGenerationService = Depends(
        _get_background_service
    ),
) -> OperationResultResponse:
    try:
        result = await background_service.reset()
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return operation_response(result)


@router.post("/dates", response_model=OperationResultResponse)
async def generate_dates(
    payload: DateQueryRequest,
    generation_service: SitemapGenerationService = Depends(_get_generation_service),
) -> OperationResultResponse:
    result = await generation_service.generate_for_date_queries(
        payload.date_queries, payload.force, source="api"
    )
    return operation_response(result)


@router.post("/dates/delete", response_model=OperationResultResponse)
async def delete_dates(
    payload: DateQueryRequest,
    generation_service: SitemapGenerationService = Depends(_get_generation_service),
) -> OperationResultResponse:
    result = await generation_service.delete_for_date_queries(payload.date_queries)
    return operation_response(result)


@router.post("/incremental", response_model=OperationResultResponse)
async def generate_incremental(
    incremental_service: IncrementalGenerationService = Depends(
        _get_incremental_service
    ),
) -> OperationResultResponse:
    return operation_response(await incremental_service.generate(source="api"))


@router.get("/missing", response_model=MissingSitemapReportResponse)
async def get_missing_sitemaps(
    scope: str | None = Query(default=None),
    detection_service: MissingSitemapDetectionService = Depends(
        _get_detection_service
    ),
) -> MissingSitemapReportResponse:
    try:
        partition = DatePartitionKey.parse(scope) if scope else None
    except InvalidDateQueryError as error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error

    try:
        report = await detection_service.detect(scope=partition)
    except (SitemapRepositoryUnavailableError, ContentSourceError) as error:
        raise_unavailable(error)
    return MissingSitemapReportResponse(**report.to_dict())


@router.get("/stats", response_model=GenerationStatsResponse)
async def get_generation_stats(
    request: Request,
    recent_days: int | None = Query(default=None, ge=1, le=366),
    stats_listener: SitemapStatsListener = Depends(_get_stats_listener),
    stats_service: SitemapStatsService = Depends(_get_stats_service),
) -> GenerationStatsResponse:
    settings = getattr(request.app.state, "settings", None)
    if recent_days is None:
        recent_days = getattr(settings, "SITEMAP_STATS_RECENT_DAYS", 7)
    try:
        summary = await stats_service.collect(recent_days=recent_days)
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)

    pipeline_service = getattr(request.app.state, "generation_pipeline_service", None)
    jobs: list[JobMonitoringResponse] = []
    if isinstance(pipeline_service, SitemapGenerationPipelineService):
        for metrics in pipeline_service.monitoring_snapshot():
            job_payload = asdict(metrics)
            job_payload.pop("last_summary", None)
            jobs.append(JobMonitoringResponse(**job_payload))

    stats = stats_listener.stats
    return GenerationStatsResponse(
        sitemaps_generated=stats.sitemaps_generated,
        urls_generated=stats.urls_generated,
        total_generation_time=stats.total_generation_time,
        average_generation_time=stats.average_generation_time,
        last_generated_date=stats.last_generated_date,
        last_generated_at=stats.last_generated_at,
        generated_by_source=dict(stats.generated_by_source),
        stored_url_count=summary.total_urls,
        stored_sitemaps=summary.total_sitemaps,
        stored_documents=summary.total_documents,
        average_urls_per_sitemap=summary.average_urls_per_sitemap,
        coverage=SitemapCoverageResponse(**summary.coverage.to_dict()),
        recent_url_counts=summary.recent_url_counts,
        jobs=jobs,
    )


__all__ = ["operation_response", "raise_unavailable", "router"]
