"""Pydantic schemas for stored sitemap maintenance endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SitemapScopeRequest(BaseModel):
    """Restrict a maintenance pass to the given date selectors; empty means all."""

    date_queries: list[str] = Field(default_factory=list)


class SitemapExportRequest(BaseModel):
    """Export stored sitemaps under the configured export directory."""

    date_queries: list[str] = Field(default_factory=list)
    pretty: bool = False
    subdirectory: str | None = Field(
        default=None, min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$"
    )


class SitemapExportResponse(BaseModel):
    count: int
    output_dir: str
    files: list[str]
    errors: list[str]
    message: str


class SitemapValidationResponse(BaseModel):
    checked: int
    valid: int
    invalid: int
    errors: dict[str, list[str]]


class SitemapRecountResponse(BaseModel):
    checked: int
    corrected: int
    total_urls: int


__all__ = [
    "SitemapExportRequest",
    "SitemapExportResponse",
    "SitemapRecountResponse",
    "SitemapScopeRequest",
    "SitemapValidationResponse",
]
