"""Serialize sitemap aggregates to sitemaps.org 0.9 XML with lxml."""

from __future__ import annotations

import html
import re

from lxml import etree  # type: ignore[import-untyped]

from daily_sitemaps.services.sitemap_content import (
    SitemapContent,
    SitemapIndexCollection,
)
from daily_sitemaps.services.url_entries import ImageEntry, UrlEntry

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
IMAGE_NAMESPACE = "http://www.google.com/schemas/sitemap-image/1.1"
IMAGE_FIELDS = ("title", "caption", "geo_location", "license")

_INVALID_XML_CHARACTERS = re.compile(
    "[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]"
)


def format_sitemap(
    content: SitemapContent,
    *,
    stylesheet_url: str | None = None,
) -> str:
    """Render a ``<urlset>`` document; the image namespace is declared on demand."""

    nsmap: dict[str | None, str] = {None: SITEMAP_NAMESPACE}
    if content.has_images():
        nsmap["image"] = IMAGE_NAMESPACE

    root = etree.Element(_sitemap_tag("urlset"), nsmap=nsmap)
    for entry in content.get_entries():
        _append_url(root, entry)
    return _serialize(root, stylesheet_url=stylesheet_url)


def format_sitemap_index(
    collection: SitemapIndexCollection,
    *,
    stylesheet_url: str | None = None,
) -> str:
    """Render a ``<sitemapindex>`` document with one block per entry."""

    root = etree.Element(
        _sitemap_tag("sitemapindex"), nsmap={None: SITEMAP_NAMESPACE}
    )
    for entry in collection.get_entries():
        sitemap_element = etree.SubElement(root, _sitemap_tag("sitemap"))
        _append_text(sitemap_element, _sitemap_tag("loc"), entry.loc)
        if entry.lastmod is not None:
            _append_text(sitemap_element, _sitemap_tag("lastmod"), entry.lastmod)
    return _serialize(root, stylesheet_url=stylesheet_url)


def format_priority(priority: float) -> str:
    text = f"{priority:.2f}".rstrip("0")
    if text.endswith("."):
        text += "0"
    return text


def _append_url(root: etree._Element, entry: UrlEntry) -> None:
    url_element = etree.SubElement(root, _sitemap_tag("url"))
    _append_text(url_element, _sitemap_tag("loc"), entry.loc)
    if entry.lastmod is not None:
        _append_text(url_element, _sitemap_tag("lastmod"), entry.lastmod)
    if entry.changefreq is not None:
        _append_text(url_element, _sitemap_tag("changefreq"), entry.changefreq)
    if entry.priority is not None:
        _append_text(
            url_element, _sitemap_tag("priority"), format_priority(entry.priority)
        )
    for image in entry.images:
        _append_image(url_element, image)


def _append_image(url_element: etree._Element, image: ImageEntry) -> None:
    image_element = etree.SubElement(url_element, _image_tag("image"))
    _append_text(image_element, _image_tag("loc"), image.loc)
    for field_name in IMAGE_FIELDS:
        value = getattr(image, field_name)
        if value is not None:
            _append_text(image_element, _image_tag(field_name), value)


def _append_text(parent: etree._Element, tag: str, value: str) -> None:
    element = etree.SubElement(parent, tag)
    element.text = _INVALID_XML_CHARACTERS.sub("", value)


def _serialize(root: etree._Element, *, stylesheet_url: str | None) -> str:
    if stylesheet_url:
        root.addprevious(
            etree.ProcessingInstruction(
                "xml-stylesheet",
                f'type="text/xsl" href="{html.escape(stylesheet_url, quote=True)}"',
            )
        )
    payload: bytes = etree.tostring(
        root.getroottree(),
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=True,
    )
    return payload.decode("utf-8")


def _sitemap_tag(name: str) -> str:
    return f"{{{SITEMAP_NAMESPACE}}}{name}"


def _image_tag(name: str) -> str:
    return f"{{{IMAGE_NAMESPACE}}}{name}"


__all__ = [
    "IMAGE_NAMESPACE",
    "SITEMAP_NAMESPACE",
    "format_priority",
    "format_sitemap",
    "format_sitemap_index",
]
