"""Calendar helpers for date-partitioned sitemaps."""

from __future__ import annotations

import calendar
import re
from datetime import UTC, date, datetime

DATE_STAMP_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def format_date_stamp(year: int, month: int, day: int) -> str:
    """Return the ``YYYY-MM-DD`` stamp used as a sitemap partition key."""

    return f"{year:04d}-{month:02d}-{day:02d}"


def is_valid_date(year: int, month: int, day: int) -> bool:
    try:
        date(year, month, day)
    except (TypeError, ValueError):
        return False
    return True


def get_days_in_month(year: int, month: int) -> int:
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}. Must be between 1 and 12.")
    return calendar.monthrange(year, month)[1]


def parse_date_stamp(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` stamp, rejecting impossible calendar dates."""

    match = DATE_STAMP_PATTERN.match(value)
    if match is None:
        raise ValueError(f"Invalid date stamp: {value!r}")

    year, month, day = (int(part) for part in match.groups())
    if not is_valid_date(year, month, day):
        raise ValueError(f"Invalid calendar date: {value!r}")
    return date(year, month, day)


def utc_today() -> date:
    return datetime.now(UTC).date()


def ensure_utc(value: datetime) -> datetime:
    """Treat naive values as UTC; SQLite drops tzinfo on round-trip."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


__all__ = [
    "DATE_STAMP_PATTERN",
    "ensure_utc",
    "format_date_stamp",
    "get_days_in_month",
    "is_valid_date",
    "parse_date_stamp",
    "utc_today",
]
