"""Tests for date partition selectors and their expansion."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from daily_sitemaps.services.date_queries import (
    DatePartitionKey,
    iter_days,
    iter_months,
    parse_date_query,
)
from daily_sitemaps.services.sitemap_errors import InvalidDateQueryError


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024", DatePartitionKey(2024)),
        ("2024-02", DatePartitionKey(2024, 2)),
        ("2024-02-29", DatePartitionKey(2024, 2, 29)),
        ({"year": 2024, "month": 2, "day": 29}, DatePartitionKey(2024, 2, 29)),
        ({"year": "2024", "month": "3"}, DatePartitionKey(2024, 3)),
    ],
)
def test_parse_date_query_accepts_strings_and_mappings(
    value: object, expected: DatePartitionKey
) -> None:
    assert parse_date_query(value) == expected  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "value",
    [
        "2023-02-29",
        "2024-13",
        "24-01-01",
        "2024/01/01",
        {"month": 1},
        {"year": 2024, "day": 5},
        {"year": "twenty"},
        42,
    ],
)
def test_parse_date_query_rejects_invalid_selectors(value: object) -> None:
    with pytest.raises(InvalidDateQueryError):
        parse_date_query(value)  # type: ignore[arg-type]


def test_invalid_date_query_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        DatePartitionKey(2024, 2, 30)


def test_partition_key_ranges() -> None:
    month = DatePartitionKey(2024, 2)

    assert month.first_day() == date(2024, 2, 1)
    assert month.last_day() == date(2024, 2, 29)
    assert month.datetime_range() == (
        datetime(2024, 2, 1, tzinfo=UTC),
        datetime(2024, 3, 1, tzinfo=UTC),
    )
    assert month.contains(date(2024, 2, 29)) is True
    assert month.contains(date(2024, 3, 1)) is False
    assert DatePartitionKey(2024).last_day() == date(2024, 12, 31)
    assert str(month) == "2024-02"
    assert DatePartitionKey(2024, 2, 9).date_stamp == "2024-02-09"


def test_date_stamp_requires_a_day() -> None:
    with pytest.raises(ValueError, match="not a single day"):
        _ = DatePartitionKey(2024, 2).date_stamp


def test_iter_months_and_days_stop_at_today() -> None:
    today = date(2024, 3, 10)

    assert list(iter_months(2024, today=today)) == [1, 2, 3]
    assert list(iter_months(2023, today=today)) == list(range(1, 13))
    assert list(iter_months(2025, today=today)) == []
    assert list(iter_days(2024, 3, today=today)) == list(range(1, 11))
    assert len(list(iter_days(2024, 2, today=today))) == 29
    assert list(iter_days(2024, 4, today=today)) == []
