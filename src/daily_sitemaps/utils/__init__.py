"""Utility helpers for daily_sitemaps."""

from daily_sitemaps.utils.dates import (
    format_date_stamp,
    get_days_in_month,
    is_valid_date,
    parse_date_stamp,
)

__all__ = [
    "format_date_stamp",
    "get_days_in_month",
    "is_valid_date",
    "parse_date_stamp",
]
