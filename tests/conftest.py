"""Shared fixtures: per-test SQLite databases with a transactional scope."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.sqlite")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from daily_sitemaps.models import Base
from fakes import SessionScope


@pytest_asyncio.fixture
async def scoped_session(tmp_path: Path) -> AsyncIterator[SessionScope]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sitemaps.sqlite'}")
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )

    @asynccontextmanager
    async def _scoped_session() -> AsyncIterator[AsyncSession]:
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    try:
        yield _scoped_session
    finally:
        await engine.dispose()
