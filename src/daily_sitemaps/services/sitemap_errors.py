"""Error taxonomy for sitemap generation."""

from __future__ import annotations


class SitemapError(Exception):
    """Base class for sitemap generation failures."""


class SitemapValidationError(SitemapError, ValueError):
    """Raised when a sitemap value object is constructed with invalid data."""


class InvalidDateQueryError(SitemapValidationError):
    """Raised for date queries that do not describe a valid calendar selector."""


class InvalidContentItemError(SitemapError):
    """Raised when a content item cannot be turned into a URL entry."""

    def __init__(self, message: str, *, item_id: object | None = None) -> None:
        self.item_id = item_id
        super().__init__(message)


class SitemapCapacityExceededError(SitemapError):
    """Raised when a sitemap document already holds its maximum entries."""

    def __init__(self, max_entries: int) -> None:
        self.max_entries = max_entries
        super().__init__(f"Sitemap is full ({max_entries} entries)")


class ContentSourceError(SitemapError):
    """Raised when the content source cannot answer a partition query."""


class SitemapRepositoryUnavailableError(SitemapError):
    """Raised when stored sitemaps cannot be read or written."""


class PartitionGenerationFailedError(SitemapError):
    """Raised when one date partition could not be generated."""

    def __init__(self, date_stamp: str, reason: str) -> None:
        self.date_stamp = date_stamp
        self.reason = reason
        super().__init__(f"Sitemap generation failed for {date_stamp}: {reason}")


__all__ = [
    "ContentSourceError",
    "InvalidContentItemError",
    "InvalidDateQueryError",
    "PartitionGenerationFailedError",
    "SitemapCapacityExceededError",
    "SitemapError",
    "SitemapRepositoryUnavailableError",
    "SitemapValidationError",
]
