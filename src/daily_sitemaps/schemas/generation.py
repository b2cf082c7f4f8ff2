"""Pydantic schemas for generation control endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class DateQueryRequest(BaseModel):
    """Date selectors (``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``) to generate."""

    date_queries: list[str] = Field(default_factory=list)
    force: bool = False


class LatestGenerationRequest(BaseModel):
    """Optional lower bound for a "latest" background run."""

    since: datetime | None = None


class OperationResultResponse(BaseModel):
    """Serialized ``SitemapOperationResult``."""

    success: bool
    count: int
    message: str
    error_code: str | None = None


class GenerationProgressResponse(BaseModel):
    """Background generation state."""

    status: str
    mode: str | None
    force: bool
    in_progress: bool
    stop_requested: bool
    years_to_process: list[int]
    months_to_process: list[int]
    days_to_process: list[int]
    dates_to_process: list[str]
    current_year: int | None
    current_month: int | None
    current_date: str | None
    total_days: int
    processed_days: int
    generated_days: int
    failed_days: int
    remaining_days: int
    percent_complete: float
    started_at: datetime | None
    finished_at: datetime | None
    last_check_at: datetime | None
    last_update_at: datetime | None
    last_run_at: datetime | None
    last_error: str | None


class MissingSitemapReportResponse(BaseModel):
    missing_dates: list[str]
    dates_needing_updates: list[str]
    all_dates_to_generate: list[str]
    missing_dates_count: int
    dates_needing_updates_count: int
    all_dates_count: int
    total_content_count: int
    scanned_through: date
    summary: str


class JobMonitoringResponse(BaseModel):
    """Runtime metrics of one scheduled generation job."""

    job_id: str
    name: str
    total_runs: int
    successful_runs: int
    failed_runs: int
    overlap_skips: int
    running: bool
    last_started_at: datetime | None
    last_finished_at: datetime | None
    last_duration_ms: float | None
    last_error: str | None
    next_run_time: datetime | None = None


class SitemapCoverageResponse(BaseModel):
    """Date coverage of stored sitemaps between the oldest and newest day."""

    oldest_date: str | None
    newest_date: str | None
    span_days: int
    covered_days: int
    gap_days: int
    longest_streak: int
    coverage_percent: float


class GenerationStatsResponse(BaseModel):
    sitemaps_generated: int
    urls_generated: int
    total_generation_time: float
    average_generation_time: float
    last_generated_date: str | None
    last_generated_at: datetime | None
    generated_by_source: dict[str, int]
    stored_url_count: int
    stored_sitemaps: int = 0
    stored_documents: int = 0
    average_urls_per_sitemap: float = 0.0
    coverage: SitemapCoverageResponse | None = None
    recent_url_counts: dict[str, int] = Field(default_factory=dict)
    jobs: list[JobMonitoringResponse] = Field(default_factory=list)


__all__ = [
    "DateQueryRequest",
    "GenerationProgressResponse",
    "GenerationStatsResponse",
    "JobMonitoringResponse",
    "LatestGenerationRequest",
    "MissingSitemapReportResponse",
    "OperationResultResponse",
    "SitemapCoverageResponse",
]
