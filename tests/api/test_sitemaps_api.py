"""Tests for sitemap XML delivery and maintenance routes."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from lxml import etree  # type: ignore[import-untyped]

from daily_sitemaps.services.sitemap_formatter import SITEMAP_NAMESPACE
from daily_sitemaps.services.sitemap_repository import SitemapDocument
from fakes import ApiTestContext, build_api_context, make_item, utc


def _client(context: ApiTestContext) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=context.app), base_url="http://test")


def _urlset(*locations: str) -> str:
    urls = "".join(f"<url><loc>{loc}</loc></url>" for loc in locations)
    return f'<urlset xmlns="{SITEMAP_NAMESPACE}">{urls}</urlset>'


@pytest.mark.asyncio
async def test_sitemap_index_lists_stored_shards() -> None:
    context = build_api_context()
    await context.repository.upsert(
        "2024-01-15",
        [
            SitemapDocument(_urlset("https://example.com/a"), 1),
            SitemapDocument(_urlset("https://example.com/b"), 1),
        ],
        lastmod=utc(2024, 1, 15, 9),
    )

    async with _client(context) as client:
        response = await client.get("/sitemap.xml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    root = etree.fromstring(response.content)
    assert [loc.text for loc in root.iter(f"{{{SITEMAP_NAMESPACE}}}loc")] == [
        "https://example.com/sitemaps/2024-01-15.xml",
        "https://example.com/sitemaps/2024-01-15-2.xml",
    ]


@pytest.mark.asyncio
async def test_sitemap_documents_are_served_by_date_and_shard() -> None:
    context = build_api_context()
    first = _urlset("https://example.com/a")
    second = _urlset("https://example.com/b")
    await context.repository.upsert(
        "2024-01-15", [SitemapDocument(first, 1), SitemapDocument(second, 1)]
    )

    async with _client(context) as client:
        first_response = await client.get("/sitemaps/2024-01-15.xml")
        second_response = await client.get("/sitemaps/2024-01-15-2.xml")
        missing_shard = await client.get("/sitemaps/2024-01-15-3.xml")
        missing_date = await client.get("/sitemaps/2024-01-16.xml")
        invalid_date = await client.get("/sitemaps/2024-02-30.xml")
        invalid_name = await client.get("/sitemaps/latest.xml")

    assert first_response.status_code == 200
    assert first_response.text == first
    assert second_response.text == second
    assert missing_shard.status_code == 404
    assert missing_date.status_code == 404
    assert invalid_date.status_code == 404
    assert invalid_name.status_code == 404


@pytest.mark.asyncio
async def test_unavailable_repository_returns_service_unavailable() -> None:
    context = build_api_context()
    context.repository.unavailable = True

    async with _client(context) as client:
        index_response = await client.get("/sitemap.xml")
        document_response = await client.get("/sitemaps/2024-01-15.xml")

    assert index_response.status_code == 503
    assert document_response.status_code == 503


@pytest.mark.asyncio
async def test_validate_and_recount_routes() -> None:
    context = build_api_context()
    await context.repository.upsert("2024-01-15", _urlset("https://example.com/a"), 4)
    await context.repository.upsert("2024-02-01", "<urlset>", 1)

    async with _client(context) as client:
        validation = await client.post("/api/sitemaps/validate")
        scoped = await client.post(
            "/api/sitemaps/validate", json={"date_queries": ["2024-01"]}
        )
        bad_scope = await client.post(
            "/api/sitemaps/validate", json={"date_queries": ["2024-13"]}
        )
        recount = await client.post(
            "/api/sitemaps/recount", json={"date_queries": ["2024-01-15"]}
        )

    assert validation.status_code == 200
    assert validation.json()["checked"] == 2
    assert validation.json()["invalid"] == 1
    assert list(validation.json()["errors"]) == ["2024-02-01"]
    assert scoped.json()["invalid"] == 0
    assert bad_scope.status_code == 422
    assert recount.json() == {"checked": 1, "corrected": 1, "total_urls": 1}
    assert context.repository.sitemaps["2024-01-15"].url_count == 1


@pytest.mark.asyncio
async def test_cleanup_route_removes_orphans() -> None:
    context = build_api_context()
    context.content_source.add(make_item(1, utc(2024, 1, 15, 9)))
    await context.repository.upsert("2024-01-15", "<urlset/>", 1)
    await context.repository.upsert("2024-01-16", "<urlset/>", 1)

    async with _client(context) as client:
        response = await client.post("/api/sitemaps/cleanup")

    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert list(context.repository.sitemaps) == ["2024-01-15"]


@pytest.mark.asyncio
async def test_export_writes_selected_documents_under_the_export_root(
    tmp_path: Path,
) -> None:
    context = build_api_context(export_root=tmp_path)
    await context.repository.upsert(
        "2024-01-15",
        [
            SitemapDocument(_urlset("https://example.com/a"), 1),
            SitemapDocument(_urlset("https://example.com/b"), 1),
        ],
    )
    await context.repository.upsert("2024-02-01", _urlset("https://example.com/c"), 1)

    async with _client(context) as client:
        response = await client.post(
            "/api/sitemaps/export",
            json={"date_queries": ["2024-01"], "subdirectory": "january"},
        )
        invalid = await client.post(
            "/api/sitemaps/export", json={"date_queries": ["2024-13"]}
        )
        escaping = await client.post(
            "/api/sitemaps/export", json={"subdirectory": "../outside"}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert body["files"] == ["2024-01-15.xml", "2024-01-15-2.xml"]
    assert body["errors"] == []
    assert sorted(path.name for path in (tmp_path / "january").iterdir()) == [
        "2024-01-15-2.xml",
        "2024-01-15.xml",
    ]
    assert invalid.status_code == 422
    assert escaping.status_code == 422
