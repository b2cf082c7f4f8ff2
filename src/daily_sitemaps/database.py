"""Async engine, transactional sessions, and startup storage checks."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from daily_sitemaps.config import Settings, get_settings
from daily_sitemaps.models import Base

POOL_SIZE = 5
POOL_MAX_OVERFLOW = 10
SQLITE_BUSY_TIMEOUT_SECONDS = 30

_database_logger = logging.getLogger("daily_sitemaps.database")

_ORPHANED_IMAGES_QUERY = text(
    """
    SELECT COUNT(*)
    FROM article_images AS image
    LEFT JOIN articles AS article ON article.id = image.article_id
    WHERE article.id IS NULL
    """
)
_SHARD_GAPS_QUERY = text(
    """
    SELECT date
    FROM sitemaps
    GROUP BY date
    HAVING MIN(shard) != 1 OR MAX(shard) != COUNT(*)
    ORDER BY date
    """
)


@dataclass(slots=True, frozen=True)
class StorageHealthReport:
    """Startup findings; only a failed integrity check blocks startup."""

    integrity_ok: bool
    orphaned_images: int
    shard_gap_dates: tuple[str, ...]

    @property
    def is_healthy(self) -> bool:
        return (
            self.integrity_ok
            and self.orphaned_images == 0
            and not self.shard_gap_dates
        )


def _is_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite"


def _prepare_sqlite_file(url: URL) -> None:
    database_path = url.database
    if not database_path or database_path == ":memory:":
        return
    if database_path.startswith("file:"):
        return

    path = Path(database_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)


def _attach_sqlite_pragmas(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build the pooled engine; SQLite files are created on first use."""

    url = make_url(settings.DATABASE_URL)
    connect_args: dict[str, int] = {}
    if _is_sqlite(url):
        _prepare_sqlite_file(url)
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT_SECONDS

    built = create_async_engine(
        url,
        poolclass=AsyncAdaptedQueuePool,
        pool_pre_ping=True,
        pool_size=POOL_SIZE,
        max_overflow=POOL_MAX_OVERFLOW,
        connect_args=connect_args,
    )
    if _is_sqlite(url):
        _attach_sqlite_pragmas(built)
    return built


engine = create_engine_from_settings(get_settings())

SessionFactory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on success and rolls back on error."""

    session = SessionFactory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def initialize_database() -> None:
    """Create missing tables; on SQLite also require WAL journaling."""

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    if not _is_sqlite(engine.url):
        return

    async with engine.connect() as connection:
        journal_mode = (
            await connection.execute(text("PRAGMA journal_mode;"))
        ).scalar_one()
    if str(journal_mode).lower() != "wal":
        raise RuntimeError(
            f"SQLite WAL mode was not enabled. Current mode: {journal_mode}"
        )


async def _sqlite_integrity_ok(connection: AsyncConnection) -> bool:
    rows = (await connection.execute(text("PRAGMA integrity_check;"))).scalars().all()
    if len(rows) == 1 and rows[0] == "ok":
        return True
    _database_logger.error(
        "database_integrity_check_failed", extra={"integrity_rows": list(rows)}
    )
    return False


async def run_startup_database_health_check(
    *,
    fail_fast_on_integrity_error: bool = True,
    bind: AsyncEngine | None = None,
) -> StorageHealthReport:
    """Check integrity, orphaned image rows and non-contiguous sitemap shards."""

    target = bind or engine
    async with target.connect() as connection:
        integrity_ok = True
        if _is_sqlite(target.url):
            integrity_ok = await _sqlite_integrity_ok(connection)
        orphaned_images = int(
            (await connection.execute(_ORPHANED_IMAGES_QUERY)).scalar_one()
        )
        shard_gap_dates = tuple(
            (await connection.execute(_SHARD_GAPS_QUERY)).scalars().all()
        )

    report = StorageHealthReport(
        integrity_ok=integrity_ok,
        orphaned_images=orphaned_images,
        shard_gap_dates=shard_gap_dates,
    )
    if orphaned_images:
        _database_logger.warning(
            "database_orphaned_images_detected",
            extra={"orphaned_images": orphaned_images},
        )
    if shard_gap_dates:
        _database_logger.warning(
            "sitemap_shard_gaps_detected",
            extra={"dates": list(shard_gap_dates)},
        )
    _database_logger.info(
        "database_startup_health_check_completed",
        extra={"integrity_ok": integrity_ok, "healthy": report.is_healthy},
    )

    if fail_fast_on_integrity_error and not integrity_ok:
        raise RuntimeError(
            "Database integrity check failed. Review logs before restarting."
        )
    return report


async def close_database() -> None:
    await engine.dispose()


__all__ = [
    "SessionFactory",
    "StorageHealthReport",
    "close_database",
    "create_engine_from_settings",
    "engine",
    "initialize_database",
    "run_startup_database_health_check",
    "session_scope",
]
