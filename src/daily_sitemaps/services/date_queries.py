"""Date partition selectors and their expansion into concrete days."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from daily_sitemaps.services.sitemap_errors import InvalidDateQueryError
from daily_sitemaps.utils.dates import (
    format_date_stamp,
    get_days_in_month,
    is_valid_date,
)

MIN_YEAR = 1
MAX_YEAR = 9999
DATE_QUERY_PATTERN = re.compile(r"^(\d{4})(?:-(\d{2})(?:-(\d{2}))?)?$")


@dataclass(slots=True, frozen=True)
class DatePartitionKey:
    """A year, month or day bucket of content."""

    year: int
    month: int | None = None
    day: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.year, int) or not MIN_YEAR <= self.year <= MAX_YEAR:
            raise InvalidDateQueryError(f"Invalid year: {self.year!r}")
        if self.month is None:
            if self.day is not None:
                raise InvalidDateQueryError("A day requires a month")
            return
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise InvalidDateQueryError(f"Invalid month: {self.month!r}")
        if self.day is None:
            return
        if not isinstance(self.day, int) or not is_valid_date(
            self.year, self.month, self.day
        ):
            raise InvalidDateQueryError(
                f"Invalid date: {self.year}-{self.month}-{self.day}"
            )

    @classmethod
    def parse(cls, value: str) -> DatePartitionKey:
        """Parse ``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``."""

        match = DATE_QUERY_PATTERN.match(value.strip())
        if match is None:
            raise InvalidDateQueryError(f"Invalid date query: {value!r}")
        year, month, day = match.groups()
        return cls(
            year=int(year),
            month=int(month) if month is not None else None,
            day=int(day) if day is not None else None,
        )

    @classmethod
    def from_date(cls, value: date) -> DatePartitionKey:
        return cls(year=value.year, month=value.month, day=value.day)

    @property
    def is_day(self) -> bool:
        return self.day is not None

    @property
    def date_stamp(self) -> str:
        if self.month is None or self.day is None:
            raise ValueError(f"{self} is not a single day")
        return format_date_stamp(self.year, self.month, self.day)

    def to_date(self) -> date:
        if self.month is None or self.day is None:
            raise ValueError(f"{self} is not a single day")
        return date(self.year, self.month, self.day)

    def first_day(self) -> date:
        return date(self.year, self.month or 1, self.day or 1)

    def last_day(self) -> date:
        if self.month is None:
            return date(self.year, 12, 31)
        if self.day is None:
            return date(
                self.year, self.month, get_days_in_month(self.year, self.month)
            )
        return date(self.year, self.month, self.day)

    def datetime_range(self) -> tuple[datetime, datetime]:
        """Half-open UTC range ``[start, end)`` covering the partition."""

        start = datetime.combine(self.first_day(), datetime.min.time(), tzinfo=UTC)
        end = datetime.combine(
            self.last_day(), datetime.min.time(), tzinfo=UTC
        ) + timedelta(days=1)
        return start, end

    def contains(self, value: date) -> bool:
        return self.first_day() <= value <= self.last_day()

    def __str__(self) -> str:
        if self.month is None:
            return f"{self.year:04d}"
        if self.day is None:
            return f"{self.year:04d}-{self.month:02d}"
        return self.date_stamp


DateQuery = DatePartitionKey | str | Mapping[str, int | None]


def parse_date_query(value: DateQuery) -> DatePartitionKey:
    """Coerce a string or ``{year, month?, day?}`` mapping into a partition key."""

    if isinstance(value, DatePartitionKey):
        return value
    if isinstance(value, str):
        return DatePartitionKey.parse(value)
    if isinstance(value, Mapping):
        if value.get("year") is None:
            raise InvalidDateQueryError("A date query requires a year")
        try:
            year = int(value["year"])  # type: ignore[arg-type]
            month = _optional_int(value.get("month"))
            day = _optional_int(value.get("day"))
        except (TypeError, ValueError) as error:
            raise InvalidDateQueryError(f"Invalid date query: {value!r}") from error
        return DatePartitionKey(year=year, month=month, day=day)
    raise InvalidDateQueryError(f"Unsupported date query: {value!r}")


def _optional_int(value: object) -> int | None:
    if value is None:
        return None
    return int(value)  # type: ignore[call-overload]


def parse_date_queries(values: Iterable[DateQuery]) -> list[DatePartitionKey]:
    return [parse_date_query(value) for value in values]


def iter_months(year: int, *, today: date) -> Iterator[int]:
    """Yield months of ``year`` that are not in the future."""

    if year > today.year:
        return
    last_month = today.month if year == today.year else 12
    yield from range(1, last_month + 1)


def iter_days(year: int, month: int, *, today: date) -> Iterator[int]:
    """Yield days of a month that are not in the future."""

    if (year, month) > (today.year, today.month):
        return
    last_day = get_days_in_month(year, month)
    if (year, month) == (today.year, today.month):
        last_day = today.day
    yield from range(1, last_day + 1)


__all__ = [
    "DateQuery",
    "DatePartitionKey",
    "iter_days",
    "iter_months",
    "parse_date_queries",
    "parse_date_query",
]
