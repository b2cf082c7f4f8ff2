"""Validate stored sitemap XML and reconcile stored URL counts."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

from lxml import etree  # type: ignore[import-untyped]

from daily_sitemaps.services.date_queries import (
    DatePartitionKey,
    DateQuery,
    parse_date_queries,
)
from daily_sitemaps.services.sitemap_repository import SitemapRepository
from daily_sitemaps.services.url_entries import is_valid_lastmod, is_valid_sitemap_url
from daily_sitemaps.utils.dates import parse_date_stamp

_validation_logger = logging.getLogger("daily_sitemaps.validation")


@dataclass(slots=True, frozen=True)
class DocumentValidation:
    """Findings for one XML document."""

    url_count: int
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass(slots=True)
class ValidationSummary:
    checked: int = 0
    valid: int = 0
    invalid: int = 0
    errors: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "valid": self.valid,
            "invalid": self.invalid,
            "errors": self.errors,
        }


@dataclass(slots=True)
class RecountSummary:
    checked: int = 0
    corrected: int = 0
    total_urls: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "corrected": self.corrected,
            "total_urls": self.total_urls,
        }


def _local_name(tag_name: str) -> str:
    if tag_name.startswith("{"):
        _, _, local_name = tag_name.partition("}")
        return local_name.lower()
    return tag_name.rpartition(":")[2].lower()


def validate_sitemap_xml(xml_content: bytes | str) -> DocumentValidation:
    """Parse a ``<urlset>`` document without resolving entities or the network."""

    xml_bytes = (
        xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    )
    if not xml_bytes.strip():
        return DocumentValidation(url_count=0, errors=("Sitemap XML is empty",))

    errors: list[str] = []
    warnings: list[str] = []
    url_count = 0
    root_seen = False
    try:
        context = etree.iterparse(
            BytesIO(xml_bytes),
            events=("start", "end"),
            resolve_entities=False,
            no_network=True,
            recover=False,
        )
        for event, element in context:
            if not isinstance(element.tag, str):
                continue
            tag_name = _local_name(element.tag)
            if event == "start":
                if not root_seen:
                    root_seen = True
                    if tag_name != "urlset":
                        errors.append(
                            f"Root element must be <urlset>, got <{tag_name}>"
                        )
                continue
            if tag_name != "url":
                continue

            url_count += 1
            children = {
                _local_name(child.tag): (child.text or "").strip()
                for child in element
                if isinstance(child.tag, str)
            }
            loc = children.get("loc")
            if not loc:
                errors.append(f"URL #{url_count} is missing <loc>")
            elif not is_valid_sitemap_url(loc):
                errors.append(f"URL #{url_count} has an invalid <loc>: {loc}")
            lastmod = children.get("lastmod")
            if lastmod is not None and not is_valid_lastmod(lastmod):
                errors.append(f"URL #{url_count} has an invalid <lastmod>: {lastmod}")
            element.clear()
    except etree.XMLSyntaxError as error:
        errors.append(f"Invalid sitemap XML: {error}")

    if root_seen and url_count == 0:
        warnings.append("Sitemap contains no <url> entries")
    return DocumentValidation(
        url_count=url_count, errors=tuple(errors), warnings=tuple(warnings)
    )


class SitemapValidationService:
    """Check stored documents and fix URL counts that drifted from the XML."""

    def __init__(self, *, repository: SitemapRepository) -> None:
        self._repository = repository

    async def validate_sitemaps(
        self,
        date_queries: Sequence[DateQuery] | None = None,
    ) -> ValidationSummary:
        summary = ValidationSummary()
        for date_stamp in await self._selected_dates(date_queries):
            stored = await self._repository.get(date_stamp)
            if stored is None:
                continue
            date_errors: list[str] = []
            for shard, document in enumerate(stored.documents, start=1):
                validation = validate_sitemap_xml(document.xml)
                date_errors.extend(
                    f"shard {shard}: {message}" for message in validation.errors
                )
            summary.checked += 1
            if date_errors:
                summary.invalid += 1
                summary.errors[date_stamp] = date_errors
            else:
                summary.valid += 1

        _validation_logger.info(
            "sitemap_validation_completed",
            extra={
                "checked": summary.checked,
                "valid": summary.valid,
                "invalid": summary.invalid,
            },
        )
        return summary

    async def recount(
        self,
        date_queries: Sequence[DateQuery] | None = None,
    ) -> RecountSummary:
        summary = RecountSummary()
        for date_stamp in await self._selected_dates(date_queries):
            stored = await self._repository.get(date_stamp)
            if stored is None:
                continue
            summary.checked += 1
            for shard, document in enumerate(stored.documents, start=1):
                actual = validate_sitemap_xml(document.xml).url_count
                summary.total_urls += actual
                if actual == document.url_count:
                    continue
                await self._repository.update_url_count(date_stamp, shard, actual)
                summary.corrected += 1
                _validation_logger.warning(
                    "sitemap_url_count_corrected",
                    extra={
                        "date": date_stamp,
                        "shard": shard,
                        "stored_count": document.url_count,
                        "actual_count": actual,
                    },
                )
        return summary

    async def _selected_dates(
        self,
        date_queries: Sequence[DateQuery] | None,
    ) -> list[str]:
        dates = await self._repository.list_dates()
        if not date_queries:
            return dates
        partitions: list[DatePartitionKey] = parse_date_queries(date_queries)
        return [
            date_stamp
            for date_stamp in dates
            if any(
                partition.contains(parse_date_stamp(date_stamp))
                for partition in partitions
            )
        ]


__all__ = [
    "DocumentValidation",
    "RecountSummary",
    "SitemapValidationService",
    "ValidationSummary",
    "validate_sitemap_xml",
]
