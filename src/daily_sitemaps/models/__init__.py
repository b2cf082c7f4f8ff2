"""ORM model exports."""

from daily_sitemaps import __version__
from daily_sitemaps.models.article import PUBLISHED_STATUS, Article, ArticleImage
from daily_sitemaps.models.base import Base
from daily_sitemaps.models.generation_state import GenerationStateRecord
from daily_sitemaps.models.stored_sitemap import StoredSitemapDocument

__all__ = [
    "__version__",
    "Article",
    "ArticleImage",
    "Base",
    "GenerationStateRecord",
    "PUBLISHED_STATUS",
    "StoredSitemapDocument",
]
