"""Tests for orphaned sitemap cleanup."""

from __future__ import annotations

import pytest

from daily_sitemaps.services.sitemap_cleanup import SitemapCleanupService
from daily_sitemaps.services.sitemap_errors import ContentSourceError
from fakes import InMemoryContentSource, InMemorySitemapRepository, make_item, utc


async def _repository_with(*dates: str) -> InMemorySitemapRepository:
    repository = InMemorySitemapRepository()
    for date_stamp in dates:
        await repository.upsert(date_stamp, "<urlset/>", 1)
    return repository


@pytest.mark.asyncio
async def test_cleanup_removes_only_dates_without_content() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 1, 15, 9))])
    repository = await _repository_with("2024-01-15", "2024-01-16", "2024-01-17")
    service = SitemapCleanupService(content_source=source, repository=repository)

    assert await service.find_orphaned_dates() == ["2024-01-16", "2024-01-17"]
    result = await service.cleanup_orphaned_sitemaps()

    assert result.success is True
    assert result.count == 2
    assert list(repository.sitemaps) == ["2024-01-15"]


@pytest.mark.asyncio
async def test_cleanup_with_nothing_orphaned_removes_nothing() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 1, 15, 9))])
    repository = await _repository_with("2024-01-15")
    service = SitemapCleanupService(content_source=source, repository=repository)

    result = await service.cleanup_orphaned_sitemaps()

    assert result.count == 0
    assert repository.delete_calls == []


@pytest.mark.asyncio
async def test_cleanup_reports_unavailable_collaborators() -> None:
    source = InMemoryContentSource()
    repository = await _repository_with("2024-01-15")
    service = SitemapCleanupService(content_source=source, repository=repository)

    source.fail_with = ContentSourceError("offline")
    content_failure = await service.cleanup_orphaned_sitemaps()
    source.fail_with = None
    repository.unavailable = True
    storage_failure = await service.cleanup_orphaned_sitemaps()

    assert content_failure.error_code == "content_source_unavailable"
    assert storage_failure.error_code == "repository_unavailable"
