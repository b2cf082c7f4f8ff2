"""Tests for calendar helpers used as partition keys."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from daily_sitemaps.utils.dates import (
    ensure_utc,
    format_date_stamp,
    get_days_in_month,
    is_valid_date,
    parse_date_stamp,
)


def test_format_date_stamp_zero_pads_month_and_day() -> None:
    assert format_date_stamp(2024, 1, 5) == "2024-01-05"
    assert format_date_stamp(2024, 12, 31) == "2024-12-31"


def test_get_days_in_month_handles_leap_years() -> None:
    assert get_days_in_month(2024, 2) == 29
    assert get_days_in_month(2023, 2) == 28
    assert get_days_in_month(1900, 2) == 28
    assert get_days_in_month(2000, 2) == 29
    assert get_days_in_month(2024, 4) == 30


@pytest.mark.parametrize("month", [0, 13])
def test_get_days_in_month_rejects_out_of_range_month(month: int) -> None:
    with pytest.raises(ValueError, match="Invalid month"):
        get_days_in_month(2024, month)


def test_is_valid_date_rejects_impossible_dates() -> None:
    assert is_valid_date(2024, 2, 29) is True
    assert is_valid_date(2023, 2, 29) is False
    assert is_valid_date(2024, 4, 31) is False


def test_parse_date_stamp_round_trips_format() -> None:
    assert parse_date_stamp("2024-02-29") == date(2024, 2, 29)

    with pytest.raises(ValueError, match="calendar"):
        parse_date_stamp("2023-02-29")
    with pytest.raises(ValueError, match="Invalid date stamp"):
        parse_date_stamp("2024-2-9")


def test_ensure_utc_normalizes_naive_and_offset_values() -> None:
    naive = datetime(2024, 1, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    offset = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert ensure_utc(offset).tzinfo is UTC
    assert ensure_utc(offset).hour == 12
