"""Logging setup: structured records, job context, and request logging."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from time import perf_counter
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request
from starlette.responses import Response

from daily_sitemaps.config import Settings

REDACTED = "[REDACTED]"
SENSITIVE_KEY_MARKERS = ("password", "secret", "token", "authorization")
TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(job_id)s | %(message)s"
QUIET_REQUEST_PATHS = frozenset({"/health"})

# user:password@ inside database or job store URLs
_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/@\s]+@", re.I)

_current_job_id: ContextVar[str | None] = ContextVar("current_job_id", default=None)

_STANDARD_RECORD_FIELDS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName", "job_id"}


@contextmanager
def job_context(job_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``job_id``."""

    token = _current_job_id.set(job_id)
    try:
        yield
    finally:
        _current_job_id.reset(token)


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return _URL_CREDENTIALS.sub(r"\g<scheme>" + REDACTED + "@", value)
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_sensitive(key) else _scrub(item)
            for key, item in value.items()
        }
    return value


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEY_MARKERS)


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_FIELDS
    }


class JobContextFilter(logging.Filter):
    """Stamp records with the active job id, or ``-`` outside a job."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "job_id", None) is None:
            record.job_id = _current_job_id.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact secret-looking fields and credentials embedded in URLs."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = _scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = _scrub(record.args)
        for key, value in _record_extras(record).items():
            setattr(record, key, REDACTED if _is_sensitive(key) else _scrub(value))
        return True


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line with every ``extra=`` field inlined."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        job_id = getattr(record, "job_id", "-")
        if job_id != "-":
            payload["job_id"] = job_id
        payload.update(_record_extras(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _create_handler(settings: Settings) -> logging.Handler:
    log_file = settings.LOG_FILE
    if log_file is None:
        return logging.StreamHandler()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=log_file,
        maxBytes=settings.LOG_FILE_MAX_BYTES,
        backupCount=settings.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )


def setup_logging(settings: Settings) -> None:
    """Install a single root handler configured from ``settings``."""

    handler = _create_handler(settings)
    handler.addFilter(JobContextFilter())
    handler.addFilter(SensitiveDataFilter())
    if settings.LOG_FORMAT == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.LOG_LEVEL)
    logging.captureWarnings(True)


def add_request_logging_middleware(app: FastAPI) -> None:
    """Log one line per request; health checks are logged at DEBUG."""

    request_logger = logging.getLogger("daily_sitemaps.request")

    @app.middleware("http")
    async def log_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started_at = perf_counter()
        path = request.url.path

        def _fields(status_code: int) -> dict[str, Any]:
            return {
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round((perf_counter() - started_at) * 1000, 2),
                "client_ip": request.client.host if request.client else "unknown",
            }

        try:
            response = await call_next(request)
        except Exception:
            request_logger.exception("request_failed", extra=_fields(500))
            raise

        level = logging.DEBUG if path in QUIET_REQUEST_PATHS else logging.INFO
        request_logger.log(
            level, "request_completed", extra=_fields(response.status_code)
        )
        return response


__all__ = [
    "JobContextFilter",
    "JsonLogFormatter",
    "SensitiveDataFilter",
    "add_request_logging_middleware",
    "job_context",
    "setup_logging",
]
