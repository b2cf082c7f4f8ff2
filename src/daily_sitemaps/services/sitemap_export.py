"""Write stored sitemap documents to a directory as static XML files."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from lxml import etree  # type: ignore[import-untyped]

from daily_sitemaps.config import Settings
from daily_sitemaps.services.date_queries import DateQuery, parse_date_queries
from daily_sitemaps.services.sitemap_repository import SitemapRepository
from daily_sitemaps.utils.dates import parse_date_stamp

_export_logger = logging.getLogger("daily_sitemaps.export")

_PRETTY_PARSER = etree.XMLParser(
    remove_blank_text=True,
    resolve_entities=False,
    no_network=True,
)


@dataclass(slots=True)
class SitemapExportResult:
    output_dir: Path
    count: int = 0
    files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        noun = "sitemap" if self.count == 1 else "sitemaps"
        return f"Exported {self.count} {noun} to {self.output_dir}."


def document_filename(date_stamp: str, shard: int) -> str:
    """Same names the HTTP routes serve: ``{date}.xml`` then ``{date}-{n}.xml``."""

    if shard == 1:
        return f"{date_stamp}.xml"
    return f"{date_stamp}-{shard}.xml"


def format_xml_for_export(xml: str, *, pretty: bool) -> str:
    """Re-indent ``xml`` when ``pretty``; unparseable input is returned unchanged."""

    if not pretty:
        return xml
    try:
        root = etree.fromstring(xml.encode("utf-8"), parser=_PRETTY_PARSER)
    except etree.XMLSyntaxError:
        return xml
    payload: bytes = etree.tostring(
        root.getroottree(),
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=True,
    )
    return payload.decode("utf-8")


class SitemapExportService:
    """Export every stored shard, or those matching date selectors."""

    def __init__(
        self,
        *,
        repository: SitemapRepository,
        export_root: Path = Path("sitemap-exports"),
    ) -> None:
        self._repository = repository
        self.export_root = export_root

    @classmethod
    def from_settings(
        cls, settings: Settings, *, repository: SitemapRepository
    ) -> SitemapExportService:
        return cls(repository=repository, export_root=settings.SITEMAP_EXPORT_DIR)

    async def export_sitemaps(
        self,
        output_dir: Path | None = None,
        date_queries: Sequence[DateQuery] | None = None,
        *,
        pretty: bool = False,
    ) -> SitemapExportResult:
        """Write matching documents into ``output_dir``, creating it if needed.

        ``output_dir`` defaults to the export root.

        Invalid selectors raise ``InvalidDateQueryError`` before anything is
        written. A file that cannot be written is recorded in ``errors`` and
        the export continues with the next document.
        """

        dates = await self._selected_dates(date_queries)
        output_dir = output_dir or self.export_root
        output_dir.mkdir(parents=True, exist_ok=True)
        result = SitemapExportResult(output_dir=output_dir.resolve())

        for date_stamp in dates:
            stored = await self._repository.get(date_stamp)
            if stored is None:
                continue
            for shard, document in enumerate(stored.documents, start=1):
                if not document.xml:
                    continue
                target = output_dir / document_filename(date_stamp, shard)
                try:
                    target.write_text(
                        format_xml_for_export(document.xml, pretty=pretty),
                        encoding="utf-8",
                    )
                except OSError as error:
                    result.errors.append(f"Failed to write file {target}: {error}")
                    continue
                result.count += 1
                result.files.append(target.name)

        _export_logger.info(
            "sitemaps_exported",
            extra={
                "output_dir": str(result.output_dir),
                "exported": result.count,
                "errors": len(result.errors),
                "pretty": pretty,
            },
        )
        return result

    async def _selected_dates(
        self,
        date_queries: Sequence[DateQuery] | None,
    ) -> list[str]:
        partitions = parse_date_queries(date_queries or [])
        dates = await self._repository.list_dates()
        if not partitions:
            return dates
        return [
            stamp
            for stamp in dates
            if any(
                partition.contains(parse_date_stamp(stamp)) for partition in partitions
            )
        ]


__all__ = [
    "SitemapExportResult",
    "SitemapExportService",
    "document_filename",
    "format_xml_for_export",
]
