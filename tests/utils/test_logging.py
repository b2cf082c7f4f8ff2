"""Tests for structured log formatting, job context, and redaction."""

from __future__ import annotations

import json
import logging

from daily_sitemaps.utils.logging import (
    JobContextFilter,
    JsonLogFormatter,
    SensitiveDataFilter,
    job_context,
)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="daily_sitemaps.generation",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="sitemap_generated",
        args=None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields() -> None:
    record = _record(date="2024-01-15", url_count=3)

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "sitemap_generated"
    assert payload["logger"] == "daily_sitemaps.generation"
    assert payload["level"] == "INFO"
    assert payload["date"] == "2024-01-15"
    assert payload["url_count"] == 3
    assert "job_id" not in payload


def test_job_context_tags_records_logged_inside_the_block() -> None:
    context_filter = JobContextFilter()

    with job_context("sitemap-generation-tick"):
        inside = _record()
        context_filter.filter(inside)
    outside = _record()
    context_filter.filter(outside)

    assert getattr(inside, "job_id") == "sitemap-generation-tick"
    assert getattr(outside, "job_id") == "-"
    payload = json.loads(JsonLogFormatter().format(inside))
    assert payload["job_id"] == "sitemap-generation-tick"


def test_sensitive_data_filter_redacts_keys_and_url_credentials() -> None:
    record = _record(
        database_url="postgresql+asyncpg://app:hunter2@db:5432/sitemaps",
        date="2024-01-15",
    )
    record.msg = {"password": "hunter2", "nested": {"token": "t"}, "safe": 1}

    assert SensitiveDataFilter().filter(record) is True

    assert getattr(record, "database_url") == (
        "postgresql+asyncpg://[REDACTED]@db:5432/sitemaps"
    )
    assert getattr(record, "date") == "2024-01-15"
    assert record.msg == {
        "password": "[REDACTED]",
        "nested": {"token": "[REDACTED]"},
        "safe": 1,
    }
