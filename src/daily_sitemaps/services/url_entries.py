"""URL and image entries plus the builder that maps content items to them."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import urlsplit

from daily_sitemaps.config import Settings
from daily_sitemaps.services.content_source import ContentImage, ContentItem
from daily_sitemaps.services.sitemap_errors import (
    InvalidContentItemError,
    SitemapValidationError,
)
from daily_sitemaps.utils.dates import ensure_utc, is_valid_date

MAX_URL_LENGTH = 2048
MAX_TEXT_LENGTH = 2048
DEFAULT_CHANGEFREQ = "monthly"
DEFAULT_PRIORITY = 0.7
DEFAULT_MAX_IMAGES_PER_ENTRY = 1000
CHANGE_FREQUENCIES = frozenset(
    {"always", "hourly", "daily", "weekly", "monthly", "yearly", "never"}
)
LASTMOD_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})(T\d{2}:\d{2}:\d{2}([+-]\d{2}:\d{2}|Z))?$"
)

PriorityPolicy = Callable[[ContentItem], float | None]
ChangeFrequencyPolicy = Callable[[ContentItem], str | None]

_builder_logger = logging.getLogger("daily_sitemaps.url_entries")


def is_valid_sitemap_url(value: str) -> bool:
    """Return whether ``value`` is an absolute http(s) URL without whitespace."""

    if not value or any(character.isspace() for character in value):
        return False
    parsed = urlsplit(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def validate_location(value: object, *, field_name: str = "loc") -> str:
    if not isinstance(value, str) or not value.strip():
        raise SitemapValidationError(f"{field_name} is required and cannot be empty")
    if len(value) > MAX_URL_LENGTH:
        raise SitemapValidationError(
            f"{field_name} cannot exceed {MAX_URL_LENGTH} characters"
        )
    if not is_valid_sitemap_url(value):
        raise SitemapValidationError(f"{field_name} must be a valid URL: {value}")
    return value


def is_valid_lastmod(value: str) -> bool:
    match = LASTMOD_PATTERN.match(value)
    if match is None:
        return False
    year, month, day = (int(part) for part in match.group(1, 2, 3))
    return is_valid_date(year, month, day)


def format_lastmod(value: datetime) -> str:
    """Render a timestamp as W3C datetime with an explicit UTC offset."""

    return ensure_utc(value).isoformat(timespec="seconds")


def _validate_optional_text(value: str | None, *, field_name: str) -> None:
    if value is None:
        return
    if not value.strip():
        raise SitemapValidationError(f"{field_name} cannot be empty when provided")
    if len(value) > MAX_TEXT_LENGTH:
        raise SitemapValidationError(
            f"{field_name} cannot exceed {MAX_TEXT_LENGTH} characters"
        )


@dataclass(slots=True, frozen=True)
class ImageEntry:
    """Image extension data attached to one URL entry."""

    loc: str
    title: str | None = None
    caption: str | None = None
    geo_location: str | None = None
    license: str | None = None

    def __post_init__(self) -> None:
        validate_location(self.loc, field_name="image loc")
        _validate_optional_text(self.title, field_name="image title")
        _validate_optional_text(self.caption, field_name="image caption")
        _validate_optional_text(self.geo_location, field_name="image geo_location")
        if self.license is not None:
            validate_location(self.license, field_name="image license")

    def to_dict(self) -> dict[str, str]:
        payload = {"loc": self.loc}
        for name in ("title", "caption", "geo_location", "license"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload


@dataclass(slots=True, frozen=True)
class UrlEntry:
    """One ``<url>`` element of a sitemap document."""

    loc: str
    lastmod: str | None = None
    changefreq: str | None = None
    priority: float | None = None
    images: tuple[ImageEntry, ...] = field(default=())

    def __post_init__(self) -> None:
        validate_location(self.loc)
        if self.lastmod is not None and not is_valid_lastmod(self.lastmod):
            raise SitemapValidationError(f"Invalid lastmod value: {self.lastmod!r}")
        if self.changefreq is not None and self.changefreq not in CHANGE_FREQUENCIES:
            raise SitemapValidationError(
                f"Invalid changefreq value: {self.changefreq!r}"
            )
        if self.priority is not None and not 0.0 <= self.priority <= 1.0:
            raise SitemapValidationError(
                f"priority must be between 0.0 and 1.0, got {self.priority}"
            )
        images = tuple(self.images)
        if any(not isinstance(image, ImageEntry) for image in images):
            raise SitemapValidationError("images must contain only ImageEntry values")
        object.__setattr__(self, "images", images)

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"loc": self.loc}
        if self.lastmod is not None:
            payload["lastmod"] = self.lastmod
        if self.changefreq is not None:
            payload["changefreq"] = self.changefreq
        if self.priority is not None:
            payload["priority"] = self.priority
        if self.images:
            payload["images"] = [image.to_dict() for image in self.images]
        return payload


class UrlEntryBuilder:
    """Map content items to URL entries using configurable policies."""

    def __init__(
        self,
        *,
        include_images: bool = True,
        max_images_per_entry: int = DEFAULT_MAX_IMAGES_PER_ENTRY,
        default_changefreq: str | None = DEFAULT_CHANGEFREQ,
        default_priority: float | None = DEFAULT_PRIORITY,
        priority_policy: PriorityPolicy | None = None,
        changefreq_policy: ChangeFrequencyPolicy | None = None,
    ) -> None:
        if max_images_per_entry < 0:
            raise ValueError("max_images_per_entry must not be negative")
        if (
            default_changefreq is not None
            and default_changefreq not in CHANGE_FREQUENCIES
        ):
            raise ValueError(f"Unsupported changefreq: {default_changefreq}")

        self._include_images = include_images
        self._max_images_per_entry = max_images_per_entry
        self._priority_policy = priority_policy or (lambda _item: default_priority)
        self._changefreq_policy = changefreq_policy or (
            lambda _item: default_changefreq
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> UrlEntryBuilder:
        return cls(
            include_images=settings.SITEMAP_INCLUDE_IMAGES,
            max_images_per_entry=settings.SITEMAP_MAX_IMAGES_PER_ENTRY,
            default_changefreq=settings.SITEMAP_DEFAULT_CHANGEFREQ,
            default_priority=settings.SITEMAP_DEFAULT_PRIORITY,
        )

    def build(self, item: ContentItem) -> UrlEntry:
        """Return the URL entry for ``item`` or raise ``InvalidContentItemError``."""

        permalink = (item.permalink or "").strip()
        if not permalink:
            raise InvalidContentItemError(
                f"Content item {item.id} has no permalink", item_id=item.id
            )

        images = self._build_images(item) if self._include_images else ()
        try:
            return UrlEntry(
                loc=permalink,
                lastmod=format_lastmod(item.modified_at),
                changefreq=self._changefreq_policy(item),
                priority=self._priority_policy(item),
                images=images,
            )
        except SitemapValidationError as error:
            raise InvalidContentItemError(str(error), item_id=item.id) from error

    def _build_images(self, item: ContentItem) -> tuple[ImageEntry, ...]:
        entries: list[ImageEntry] = []
        for image in item.images[: self._max_images_per_entry]:
            try:
                entries.append(_image_entry(image))
            except SitemapValidationError as error:
                _builder_logger.warning(
                    "sitemap_image_skipped",
                    extra={
                        "item_id": str(item.id),
                        "image_url": image.url,
                        "error": str(error),
                    },
                )
        return tuple(entries)


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def _image_entry(image: ContentImage) -> ImageEntry:
    return ImageEntry(
        loc=image.url,
        title=_blank_to_none(image.title),
        caption=_blank_to_none(image.caption) or _blank_to_none(image.alt_text),
        geo_location=_blank_to_none(image.geo_location),
        license=_blank_to_none(image.license),
    )


__all__ = [
    "CHANGE_FREQUENCIES",
    "ChangeFrequencyPolicy",
    "ImageEntry",
    "MAX_URL_LENGTH",
    "PriorityPolicy",
    "UrlEntry",
    "UrlEntryBuilder",
    "format_lastmod",
    "is_valid_lastmod",
    "is_valid_sitemap_url",
    "validate_location",
]
