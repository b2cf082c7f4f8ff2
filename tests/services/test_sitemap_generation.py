"""Tests for the generation orchestrator."""

from __future__ import annotations

from datetime import date

import pytest
from lxml import etree  # type: ignore[import-untyped]

from daily_sitemaps.services.content_source import ContentImage
from daily_sitemaps.services.events import (
    EventDispatcher,
    SitemapGenerated,
    SitemapStatsListener,
)
from daily_sitemaps.services.sitemap_errors import ContentSourceError
from daily_sitemaps.services.sitemap_formatter import SITEMAP_NAMESPACE
from daily_sitemaps.services.sitemap_generation import SitemapGenerationService
from fakes import (
    InMemoryContentSource,
    InMemorySitemapRepository,
    make_item,
    utc,
)

TODAY = date(2024, 3, 10)


def _service(
    source: InMemoryContentSource,
    repository: InMemorySitemapRepository,
    **kwargs: object,
) -> SitemapGenerationService:
    return SitemapGenerationService(
        content_source=source,
        repository=repository,
        clock=lambda: TODAY,
        **kwargs,  # type: ignore[arg-type]
    )


def _url_count(xml: str) -> int:
    root = etree.fromstring(xml.encode("utf-8"))
    return len(root.findall(f"{{{SITEMAP_NAMESPACE}}}url"))


@pytest.mark.asyncio
async def test_leap_day_query_produces_one_document_with_three_urls() -> None:
    source = InMemoryContentSource(
        make_item(number, utc(2024, 2, 29, 8 + number)) for number in range(3)
    )
    repository = InMemorySitemapRepository()

    result = await _service(source, repository).generate_for_date_queries(
        [{"year": 2024, "month": 2, "day": 29}]
    )

    assert result.success is True
    assert result.count == 1
    stored = repository.sitemaps["2024-02-29"]
    assert stored.shard_count == 1
    assert stored.url_count == 3
    assert _url_count(stored.xml) == 3
    assert "image:image" not in stored.xml


@pytest.mark.asyncio
async def test_second_run_without_changes_writes_nothing() -> None:
    source = InMemoryContentSource(
        [make_item(1, utc(2024, 1, 15, 9)), make_item(2, utc(2024, 1, 16, 9))]
    )
    repository = InMemorySitemapRepository()
    service = _service(source, repository)

    first = await service.generate_for_date_queries(["2024-01"])
    writes_after_first = len(repository.upsert_calls)
    second = await service.generate_for_date_queries(["2024-01"])

    assert first.count == 2
    assert writes_after_first == 2
    assert second.success is True
    assert second.count == 0
    assert len(repository.upsert_calls) == writes_after_first
    assert second.message == "0 sitemaps generated, 2 skipped, 0 failed"


@pytest.mark.asyncio
async def test_force_and_modified_content_trigger_regeneration() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 1, 15, 9))])
    repository = InMemorySitemapRepository()
    service = _service(source, repository)
    await service.generate_for_date_queries(["2024-01-15"])

    forced = await service.generate_for_date_queries(["2024-01-15"], force=True)
    source.replace_item(
        make_item(1, utc(2024, 1, 15, 9), modified_at=utc(2024, 2, 1, 10))
    )
    stale = await service.generate_for_date_queries(["2024-01-15"])

    assert forced.count == 1
    assert stale.count == 1
    assert repository.upsert_calls == ["2024-01-15"] * 3
    assert repository.sitemaps["2024-01-15"].lastmod == utc(2024, 2, 1, 10)


@pytest.mark.asyncio
async def test_staleness_tolerance_absorbs_small_skew() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 1, 15, 9))])
    repository = InMemorySitemapRepository()
    service = _service(source, repository, staleness_tolerance_seconds=60)
    await service.generate_for_date_queries(["2024-01-15"])

    source.replace_item(
        make_item(1, utc(2024, 1, 15, 9), modified_at=utc(2024, 1, 15, 9, 0, 30))
    )
    result = await service.generate_for_date_queries(["2024-01-15"])

    assert result.count == 0
    assert len(repository.upsert_calls) == 1


@pytest.mark.asyncio
async def test_year_query_only_visits_months_with_content() -> None:
    source = InMemoryContentSource([make_item(1, utc(2023, 6, 2, 9))])
    repository = InMemorySitemapRepository()

    result = await _service(source, repository).generate_for_date_queries(["2023"])

    assert result.count == 1
    assert list(repository.sitemaps) == ["2023-06-02"]
    day_counts = [call for call in source.count_calls if call.count("-") == 2]
    assert all(call.startswith("2023-06-") for call in day_counts)
    assert len(day_counts) == 30


@pytest.mark.asyncio
async def test_partitions_over_the_ceiling_are_sharded() -> None:
    source = InMemoryContentSource(
        make_item(number, utc(2024, 1, 15, 0, number)) for number in range(5)
    )
    repository = InMemorySitemapRepository()
    service = _service(source, repository, max_entries=2, page_size=2)

    result = await service.generate_for_date_queries(["2024-01-15"])

    stored = repository.sitemaps["2024-01-15"]
    assert result.count == 1
    assert [document.url_count for document in stored.documents] == [2, 2, 1]
    assert [_url_count(document.xml) for document in stored.documents] == [2, 2, 1]
    assert [call[1] for call in source.fetch_calls] == [0, 2, 4]


@pytest.mark.asyncio
async def test_duplicate_and_invalid_items_are_skipped() -> None:
    source = InMemoryContentSource(
        [
            make_item(1, utc(2024, 1, 15, 1), permalink="https://example.com/same"),
            make_item(2, utc(2024, 1, 15, 2), permalink="https://example.com/same"),
            make_item(3, utc(2024, 1, 15, 3), permalink=""),
            make_item(
                4,
                utc(2024, 1, 15, 4),
                images=[ContentImage(url="https://example.com/4.jpg")],
            ),
        ]
    )
    repository = InMemorySitemapRepository()

    await _service(source, repository).generate_for_date_queries(["2024-01-15"])

    stored = repository.sitemaps["2024-01-15"]
    assert stored.url_count == 2
    assert "image:image" in stored.xml


@pytest.mark.asyncio
async def test_day_without_content_deletes_orphan_and_writes_nothing() -> None:
    source = InMemoryContentSource()
    repository = InMemorySitemapRepository()
    await repository.upsert("2024-01-15", "<urlset/>", 0)
    repository.upsert_calls.clear()

    result = await _service(source, repository).generate_for_date_queries(
        ["2024-01-15"]
    )

    assert result.success is True
    assert result.count == 0
    assert repository.upsert_calls == []
    assert "2024-01-15" not in repository.sitemaps
    assert "without content" in result.message


@pytest.mark.asyncio
async def test_future_days_are_ignored() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 3, 20, 9))])
    repository = InMemorySitemapRepository()

    result = await _service(source, repository).generate_for_date_queries(
        ["2024-03-20"]
    )

    assert result.count == 0
    assert repository.sitemaps == {}


@pytest.mark.asyncio
async def test_invalid_and_empty_queries_fail_without_side_effects() -> None:
    repository = InMemorySitemapRepository()
    service = _service(InMemoryContentSource(), repository)

    empty = await service.generate_for_date_queries([])
    invalid = await service.generate_for_date_queries(["2024-02-30"])

    assert (empty.success, empty.error_code) == (False, "no_queries")
    assert (invalid.success, invalid.error_code) == (False, "invalid_date_query")
    assert repository.upsert_calls == []


@pytest.mark.asyncio
async def test_unavailable_repository_aborts_the_batch() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 1, 15, 9))])
    repository = InMemorySitemapRepository()
    repository.unavailable = True

    result = await _service(source, repository).generate_for_date_queries(
        ["2024-01-15", "2024-01-16"]
    )

    assert result.success is False
    assert result.error_code == "repository_unavailable"


@pytest.mark.asyncio
async def test_content_source_outage_reports_unavailable_source() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 1, 15, 9))])
    source.fail_with = ContentSourceError("content database offline")
    repository = InMemorySitemapRepository()

    result = await _service(source, repository).generate_for_date_queries(
        ["2024-01-15"]
    )

    assert result.success is False
    assert result.error_code == "content_source_unavailable"
    assert "1 failed" in result.message
    assert "2024-01-15" in result.message


@pytest.mark.asyncio
async def test_generated_partitions_are_published_to_subscribers() -> None:
    source = InMemoryContentSource(
        [make_item(1, utc(2024, 1, 15, 9)), make_item(2, utc(2024, 1, 15, 10))]
    )
    dispatcher = EventDispatcher()
    received: list[SitemapGenerated] = []
    dispatcher.subscribe(SitemapGenerated, received.append)
    stats_listener = SitemapStatsListener()
    stats_listener.register(dispatcher)

    await _service(
        source, InMemorySitemapRepository(), dispatcher=dispatcher
    ).generate_for_date_queries(["2024-01-15"], source="manual")

    assert [(event.date, event.url_count, event.source) for event in received] == [
        ("2024-01-15", 2, "manual")
    ]
    assert stats_listener.stats.sitemaps_generated == 1
    assert stats_listener.stats.urls_generated == 2


@pytest.mark.asyncio
async def test_delete_for_date_queries_removes_matching_dates() -> None:
    repository = InMemorySitemapRepository()
    for stamp in ("2024-01-15", "2024-01-16", "2024-02-01"):
        await repository.upsert(stamp, "<urlset/>", 0)
    service = _service(InMemoryContentSource(), repository)

    result = await service.delete_for_date_queries(["2024-01"])

    assert result.count == 2
    assert list(repository.sitemaps) == ["2024-02-01"]


def test_constructor_rejects_invalid_limits() -> None:
    with pytest.raises(ValueError, match="max_entries"):
        _service(InMemoryContentSource(), InMemorySitemapRepository(), max_entries=0)
    with pytest.raises(ValueError, match="page_size"):
        _service(InMemoryContentSource(), InMemorySitemapRepository(), page_size=0)


@pytest.mark.asyncio
async def test_overlapping_queries_generate_each_day_once() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 2, 29, 9))])
    repository = InMemorySitemapRepository()
    dispatcher = EventDispatcher()
    received: list[SitemapGenerated] = []
    dispatcher.subscribe(SitemapGenerated, received.append)

    result = await _service(
        source, repository, dispatcher=dispatcher
    ).generate_for_date_queries(["2024-02", "2024-02-29"], force=True)

    assert result.success is True
    assert result.count == 1
    assert result.message.startswith("1 sitemaps generated")
    assert repository.upsert_calls == ["2024-02-29"]
    assert [event.date for event in received] == ["2024-02-29"]


@pytest.mark.asyncio
async def test_page_fetch_outage_reports_unavailable_source() -> None:
    source = InMemoryContentSource([make_item(1, utc(2024, 1, 15, 9))])
    source.fetch_fail_with = ContentSourceError("read replica offline")
    repository = InMemorySitemapRepository()

    result = await _service(source, repository).generate_for_date_queries(
        ["2024-01-15"]
    )

    assert result.success is False
    assert result.error_code == "content_source_unavailable"
    assert repository.sitemaps == {}
