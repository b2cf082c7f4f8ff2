"""Service layer for daily sitemap generation."""

from daily_sitemaps import __version__
from daily_sitemaps.services.background_generation import (
    BackgroundGenerationService,
    TickResult,
)
from daily_sitemaps.services.content_source import (
    ContentImage,
    ContentItem,
    ContentSource,
    DatabaseContentSource,
)
from daily_sitemaps.services.date_queries import (
    DatePartitionKey,
    DateQuery,
    parse_date_queries,
    parse_date_query,
)
from daily_sitemaps.services.events import (
    EventDispatcher,
    GenerationStats,
    SitemapGenerated,
    SitemapStatsListener,
)
from daily_sitemaps.services.generation_state import (
    GenerationMode,
    GenerationProgress,
    GenerationStatus,
    SqlAlchemyGenerationStateStore,
)
from daily_sitemaps.services.incremental_generation import (
    IncrementalGenerationService,
)
from daily_sitemaps.services.missing_sitemap_detection import (
    MissingSitemapDetectionService,
    MissingSitemapReport,
)
from daily_sitemaps.services.operation_result import SitemapOperationResult
from daily_sitemaps.services.sitemap_cleanup import SitemapCleanupService
from daily_sitemaps.services.sitemap_content import (
    SitemapContent,
    SitemapIndexCollection,
    SitemapIndexEntry,
)
from daily_sitemaps.services.sitemap_errors import (
    ContentSourceError,
    InvalidDateQueryError,
    SitemapError,
    SitemapRepositoryUnavailableError,
    SitemapValidationError,
)
from daily_sitemaps.services.sitemap_formatter import (
    format_sitemap,
    format_sitemap_index,
)
from daily_sitemaps.services.sitemap_generation import SitemapGenerationService
from daily_sitemaps.services.sitemap_index import SitemapIndexService
from daily_sitemaps.services.sitemap_repository import (
    SitemapRepository,
    SqlAlchemySitemapRepository,
    StoredSitemap,
)
from daily_sitemaps.services.sitemap_validation import SitemapValidationService
from daily_sitemaps.services.url_entries import ImageEntry, UrlEntry, UrlEntryBuilder

__all__ = [
    "__version__",
    "BackgroundGenerationService",
    "ContentImage",
    "ContentItem",
    "ContentSource",
    "ContentSourceError",
    "DatabaseContentSource",
    "DatePartitionKey",
    "DateQuery",
    "EventDispatcher",
    "GenerationMode",
    "GenerationProgress",
    "GenerationStats",
    "GenerationStatus",
    "ImageEntry",
    "IncrementalGenerationService",
    "InvalidDateQueryError",
    "MissingSitemapDetectionService",
    "MissingSitemapReport",
    "SitemapCleanupService",
    "SitemapContent",
    "SitemapError",
    "SitemapGenerated",
    "SitemapGenerationService",
    "SitemapIndexCollection",
    "SitemapIndexEntry",
    "SitemapIndexService",
    "SitemapOperationResult",
    "SitemapRepository",
    "SitemapRepositoryUnavailableError",
    "SitemapStatsListener",
    "SitemapValidationError",
    "SitemapValidationService",
    "SqlAlchemyGenerationStateStore",
    "StoredSitemap",
    "TickResult",
    "UrlEntry",
    "UrlEntryBuilder",
    "format_sitemap",
    "format_sitemap_index",
    "parse_date_queries",
    "parse_date_query",
]
