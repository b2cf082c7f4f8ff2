"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from daily_sitemaps.config import Settings


def test_settings_apply_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SCHEDULER_ENABLED", raising=False)

    settings = Settings(  # type: ignore[call-arg]
        _env_file=None, DATABASE_URL="sqlite+aiosqlite:///./app.sqlite"
    )

    assert settings.SCHEDULER_ENABLED is True
    assert settings.SITEMAP_MAX_ENTRIES == 50_000
    assert settings.SITEMAP_STALENESS_TOLERANCE_SECONDS == 0
    assert settings.SITEMAP_STYLESHEET_URL is None


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./env.sqlite")
    monkeypatch.setenv("SITEMAP_BASE_URL", "https://example.com/")
    monkeypatch.setenv("SITEMAP_STYLESHEET_URL", "")
    monkeypatch.setenv("AUTOMATIC_UPDATE_ENABLED", "false")

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.DATABASE_URL == "sqlite+aiosqlite:///./env.sqlite"
    assert settings.SITEMAP_BASE_URL == "https://example.com"
    assert settings.SITEMAP_STYLESHEET_URL is None
    assert settings.AUTOMATIC_UPDATE_ENABLED is False


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("SITEMAP_MAX_ENTRIES", "50001"),
        ("SITEMAP_DEFAULT_PRIORITY", "1.5"),
        ("SITEMAP_DEFAULT_CHANGEFREQ", "sometimes"),
        ("SITEMAP_STALENESS_TOLERANCE_SECONDS", "-1"),
    ],
)
def test_settings_reject_out_of_range_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(  # type: ignore[call-arg]
            _env_file=None, DATABASE_URL="sqlite+aiosqlite:///./app.sqlite"
        )
