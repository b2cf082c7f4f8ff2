"""In-memory sitemap aggregates: url sets and the root index."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from daily_sitemaps.services.sitemap_errors import (
    SitemapCapacityExceededError,
    SitemapValidationError,
)
from daily_sitemaps.services.url_entries import UrlEntry, validate_location

DEFAULT_MAX_ENTRIES = 50_000


def _validate_max_entries(max_entries: int) -> int:
    if max_entries <= 0:
        raise SitemapValidationError("max_entries must be greater than zero")
    if max_entries > DEFAULT_MAX_ENTRIES:
        raise SitemapValidationError(
            f"max_entries cannot exceed {DEFAULT_MAX_ENTRIES} (sitemap protocol limit)"
        )
    return max_entries


class SitemapContent:
    """Ordered URL entries for one sitemap document of a date partition.

    The aggregate enforces the per-document ceiling but does not deduplicate
    locations; callers that may see the same item twice dedupe upstream.
    """

    def __init__(
        self,
        entries: Iterable[UrlEntry] = (),
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        shard: int = 1,
    ) -> None:
        if shard < 1:
            raise SitemapValidationError("shard must be 1 or greater")
        self._max_entries = _validate_max_entries(max_entries)
        self._shard = shard
        self._entries: list[UrlEntry] = []
        for entry in entries:
            self.add_entry(entry)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def shard(self) -> int:
        return self._shard

    def add_entry(self, entry: UrlEntry) -> None:
        """Append ``entry`` or raise ``SitemapCapacityExceededError`` when full."""

        if not isinstance(entry, UrlEntry):
            raise SitemapValidationError("SitemapContent only accepts UrlEntry values")
        if self.is_full():
            raise SitemapCapacityExceededError(self._max_entries)
        self._entries.append(entry)

    def get_entries(self) -> tuple[UrlEntry, ...]:
        return tuple(self._entries)

    def is_full(self) -> bool:
        return len(self._entries) >= self._max_entries

    def is_empty(self) -> bool:
        return not self._entries

    def has_images(self) -> bool:
        return any(entry.has_images for entry in self._entries)

    def contains(self, loc: str) -> bool:
        return any(entry.loc == loc for entry in self._entries)

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[UrlEntry]:
        return iter(tuple(self._entries))


@dataclass(slots=True, frozen=True)
class SitemapIndexEntry:
    """One ``<sitemap>`` element of the root index."""

    loc: str
    lastmod: str | None = None

    def __post_init__(self) -> None:
        validate_location(self.loc)
        if self.lastmod is not None and not self.lastmod.strip():
            raise SitemapValidationError("lastmod cannot be empty when provided")

    def to_dict(self) -> dict[str, str]:
        payload = {"loc": self.loc}
        if self.lastmod is not None:
            payload["lastmod"] = self.lastmod
        return payload


class SitemapIndexCollection:
    """Ordered entries of the root sitemap index document."""

    def __init__(
        self,
        entries: Iterable[SitemapIndexEntry] = (),
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self._max_entries = _validate_max_entries(max_entries)
        self._entries: list[SitemapIndexEntry] = []
        for entry in entries:
            self.add(entry)

    def add(self, entry: SitemapIndexEntry) -> None:
        if not isinstance(entry, SitemapIndexEntry):
            raise SitemapValidationError(
                "SitemapIndexCollection only accepts SitemapIndexEntry values"
            )
        if len(self._entries) >= self._max_entries:
            raise SitemapCapacityExceededError(self._max_entries)
        self._entries.append(entry)

    def get_entries(self) -> tuple[SitemapIndexEntry, ...]:
        return tuple(self._entries)

    def to_list(self) -> list[dict[str, str]]:
        return [entry.to_dict() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SitemapIndexEntry]:
        return iter(tuple(self._entries))


__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "SitemapContent",
    "SitemapIndexCollection",
    "SitemapIndexEntry",
]
