"""Immutable outcome of a sitemap operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

_FACTORY_TOKEN = object()


@dataclass(slots=True, frozen=True)
class SitemapOperationResult:
    """Outcome reported to API callers and scheduler jobs.

    Build instances with :meth:`succeeded` or :meth:`failed`; direct
    construction raises ``TypeError``. A failure never carries a count and a
    success never carries an error code.
    """

    success: bool
    count: int
    message: str
    error_code: str | None = None
    _token: object = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self._token is not _FACTORY_TOKEN:
            raise TypeError(
                "Use SitemapOperationResult.succeeded() or .failed() to build results"
            )
        if self.count < 0:
            raise ValueError("count must not be negative")

    @classmethod
    def succeeded(cls, count: int, message: str = "") -> SitemapOperationResult:
        return cls(
            success=True,
            count=count,
            message=message,
            error_code=None,
            _token=_FACTORY_TOKEN,
        )

    @classmethod
    def failed(cls, message: str, error_code: str) -> SitemapOperationResult:
        return cls(
            success=False,
            count=0,
            message=message,
            error_code=error_code,
            _token=_FACTORY_TOKEN,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "count": self.count,
            "message": self.message,
            "error_code": self.error_code,
        }


__all__ = ["SitemapOperationResult"]
