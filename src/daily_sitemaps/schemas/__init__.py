"""Schema exports for API serialization."""

from daily_sitemaps import __version__
from daily_sitemaps.schemas.generation import (
    DateQueryRequest,
    GenerationProgressResponse,
    GenerationStatsResponse,
    JobMonitoringResponse,
    LatestGenerationRequest,
    MissingSitemapReportResponse,
    OperationResultResponse,
)
from daily_sitemaps.schemas.sitemap import (
    SitemapRecountResponse,
    SitemapScopeRequest,
    SitemapValidationResponse,
)

__all__ = [
    "__version__",
    "DateQueryRequest",
    "GenerationProgressResponse",
    "GenerationStatsResponse",
    "JobMonitoringResponse",
    "LatestGenerationRequest",
    "MissingSitemapReportResponse",
    "OperationResultResponse",
    "SitemapRecountResponse",
    "SitemapScopeRequest",
    "SitemapValidationResponse",
]
