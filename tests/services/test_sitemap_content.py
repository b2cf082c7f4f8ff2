"""Tests for the sitemap aggregates and index entries."""

from __future__ import annotations

import pytest

from daily_sitemaps.services.sitemap_content import (
    SitemapContent,
    SitemapIndexCollection,
    SitemapIndexEntry,
)
from daily_sitemaps.services.sitemap_errors import (
    SitemapCapacityExceededError,
    SitemapValidationError,
)
from daily_sitemaps.services.url_entries import ImageEntry, UrlEntry


def _entry(number: int, *, with_image: bool = False) -> UrlEntry:
    images = (
        (ImageEntry(loc=f"https://example.com/{number}.jpg"),) if with_image else ()
    )
    return UrlEntry(loc=f"https://example.com/posts/{number}", images=images)


def test_sitemap_content_enforces_ceiling() -> None:
    content = SitemapContent(max_entries=2)
    content.add_entry(_entry(1))
    content.add_entry(_entry(2))

    assert content.is_full() is True
    with pytest.raises(SitemapCapacityExceededError) as error_info:
        content.add_entry(_entry(3))
    assert error_info.value.max_entries == 2
    assert len(content) == 2


def test_sitemap_content_preserves_order_and_reports_images() -> None:
    content = SitemapContent([_entry(2), _entry(1, with_image=True)])

    assert [entry.loc for entry in content] == [
        "https://example.com/posts/2",
        "https://example.com/posts/1",
    ]
    assert content.has_images() is True
    assert content.contains("https://example.com/posts/1") is True
    assert content.contains("https://example.com/posts/3") is False
    assert content.to_list()[1]["images"] == [{"loc": "https://example.com/1.jpg"}]


def test_sitemap_content_get_entries_is_a_snapshot() -> None:
    content = SitemapContent([_entry(1)])
    snapshot = content.get_entries()
    content.add_entry(_entry(2))

    assert len(snapshot) == 1
    assert len(content.get_entries()) == 2


@pytest.mark.parametrize("max_entries", [0, -1, 50_001])
def test_sitemap_content_rejects_invalid_ceiling(max_entries: int) -> None:
    with pytest.raises(SitemapValidationError):
        SitemapContent(max_entries=max_entries)


def test_sitemap_content_rejects_non_entries() -> None:
    with pytest.raises(SitemapValidationError):
        SitemapContent().add_entry("https://example.com/")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "loc",
    ["", "   ", "example.com/sitemap.xml", "https://example.com/" + "x" * 2048],
)
def test_sitemap_index_entry_rejects_invalid_loc(loc: str) -> None:
    with pytest.raises(SitemapValidationError):
        SitemapIndexEntry(loc=loc)


def test_sitemap_index_entry_to_dict_omits_missing_lastmod() -> None:
    without_lastmod = SitemapIndexEntry(
        loc="https://example.com/sitemaps/2024-01-15.xml"
    )
    with_lastmod = SitemapIndexEntry(
        loc="https://example.com/sitemaps/2024-01-15.xml",
        lastmod="2024-01-15T10:00:00+00:00",
    )

    assert without_lastmod.to_dict() == {
        "loc": "https://example.com/sitemaps/2024-01-15.xml"
    }
    assert with_lastmod.to_dict() == {
        "loc": "https://example.com/sitemaps/2024-01-15.xml",
        "lastmod": "2024-01-15T10:00:00+00:00",
    }


def test_sitemap_index_entry_rejects_blank_lastmod() -> None:
    with pytest.raises(SitemapValidationError, match="lastmod"):
        SitemapIndexEntry(loc="https://example.com/s.xml", lastmod=" ")


def test_sitemap_index_entry_equality_compares_loc_and_lastmod() -> None:
    loc = "https://example.com/sitemaps/2024-01-15.xml"

    assert SitemapIndexEntry(loc) == SitemapIndexEntry(loc)
    assert SitemapIndexEntry(loc, "2024-01-15") == SitemapIndexEntry(loc, "2024-01-15")
    assert SitemapIndexEntry(loc, "2024-01-15") != SitemapIndexEntry(loc)
    assert SitemapIndexEntry(loc) != SitemapIndexEntry(loc + "?page=2")


def test_sitemap_index_collection_enforces_ceiling() -> None:
    collection = SitemapIndexCollection(max_entries=1)
    collection.add(SitemapIndexEntry("https://example.com/a.xml"))

    with pytest.raises(SitemapCapacityExceededError):
        collection.add(SitemapIndexEntry("https://example.com/b.xml"))
    assert collection.to_list() == [{"loc": "https://example.com/a.xml"}]
