"""API package exports."""

from daily_sitemaps import __version__
from daily_sitemaps.api.generation import router as generation_router
from daily_sitemaps.api.sitemaps import router as sitemaps_router

__all__ = ["__version__", "generation_router", "sitemaps_router"]
