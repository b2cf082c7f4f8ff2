"""Background generation progress value and its persistence."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from daily_sitemaps.models import GenerationStateRecord
from daily_sitemaps.services.sitemap_errors import SitemapRepositoryUnavailableError
from daily_sitemaps.utils.dates import ensure_utc

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

DEFAULT_STATE_KEY = "background"

_DATETIME_FIELDS = frozenset(
    {"started_at", "finished_at", "last_check_at", "last_update_at", "last_run_at"}
)
_TUPLE_FIELDS = frozenset(
    {"years_to_process", "months_to_process", "days_to_process", "dates_to_process"}
)


class GenerationStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    HALTING = "halting"
    HALTED = "halted"
    COMPLETED = "completed"


class GenerationMode(str, Enum):
    FULL = "full"
    LATEST = "latest"


@dataclass(slots=True, frozen=True)
class GenerationProgress:
    """Resumable queue state passed into and returned from every tick.

    Pending work is hierarchical: ``dates_to_process`` holds explicit day
    stamps, ``days_to_process`` the remaining days of ``current_month``,
    ``months_to_process`` the remaining months of ``current_year`` and
    ``years_to_process`` the years not yet expanded.
    """

    status: GenerationStatus = GenerationStatus.IDLE
    mode: GenerationMode | None = None
    force: bool = True
    years_to_process: tuple[int, ...] = ()
    months_to_process: tuple[int, ...] = ()
    days_to_process: tuple[int, ...] = ()
    dates_to_process: tuple[str, ...] = ()
    current_year: int | None = None
    current_month: int | None = None
    current_date: str | None = None
    stop_requested: bool = False
    total_days: int = 0
    processed_days: int = 0
    generated_days: int = 0
    failed_days: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None
    last_check_at: datetime | None = None
    last_update_at: datetime | None = None
    last_run_at: datetime | None = None
    last_error: str | None = None

    @property
    def in_progress(self) -> bool:
        return self.status is GenerationStatus.RUNNING

    @property
    def effective_status(self) -> GenerationStatus:
        if self.status is GenerationStatus.RUNNING and self.stop_requested:
            return GenerationStatus.HALTING
        return self.status

    @property
    def has_pending_units(self) -> bool:
        return bool(
            self.dates_to_process
            or self.days_to_process
            or self.months_to_process
            or self.years_to_process
        )

    @property
    def remaining_days(self) -> int:
        return max(self.total_days - self.processed_days, 0)

    @property
    def percent_complete(self) -> float:
        if self.total_days == 0:
            return 100.0 if self.status is GenerationStatus.COMPLETED else 0.0
        return round(min(self.processed_days / self.total_days, 1.0) * 100, 2)

    def evolve(self, **changes: Any) -> GenerationProgress:
        return replace(self, **changes)

    def to_payload(self) -> dict[str, Any]:
        """JSON-compatible snapshot; ``stop_requested`` is stored separately."""

        payload: dict[str, Any] = {}
        for item in fields(self):
            if item.name == "stop_requested":
                continue
            value = getattr(self, item.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = ensure_utc(value).isoformat()
            elif isinstance(value, tuple):
                value = list(value)
            payload[item.name] = value
        return payload

    @classmethod
    def from_payload(
        cls,
        payload: dict[str, Any],
        *,
        stop_requested: bool = False,
    ) -> GenerationProgress:
        known_fields = {item.name for item in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in payload.items():
            if key not in known_fields or key == "stop_requested":
                continue
            if key == "status":
                value = GenerationStatus(value)
            elif key == "mode" and value is not None:
                value = GenerationMode(value)
            elif key in _DATETIME_FIELDS and value is not None:
                value = ensure_utc(datetime.fromisoformat(value))
            elif key in _TUPLE_FIELDS:
                value = tuple(value or ())
            values[key] = value
        return cls(stop_requested=stop_requested, **values)

    def to_dict(self) -> dict[str, Any]:
        payload = self.to_payload()
        payload.update(
            {
                "status": self.effective_status.value,
                "in_progress": self.in_progress,
                "stop_requested": self.stop_requested,
                "remaining_days": self.remaining_days,
                "percent_complete": self.percent_complete,
            }
        )
        return payload


class GenerationStateStore(Protocol):
    async def load(self) -> GenerationProgress: ...

    async def save(
        self,
        progress: GenerationProgress,
        *,
        stop_requested: bool | None = None,
    ) -> None: ...

    async def set_stop_requested(self, value: bool) -> bool: ...


class SqlAlchemyGenerationStateStore:
    """Keep one ``GenerationProgress`` row per state key.

    ``save`` leaves the halt flag alone unless ``stop_requested`` is passed,
    so a halt requested while a tick is running survives that tick's save.
    """

    def __init__(
        self,
        *,
        key: str = DEFAULT_STATE_KEY,
        session_factory: SessionScopeFactory | None = None,
    ) -> None:
        if not key:
            raise ValueError("key must not be empty")
        if session_factory is None:
            from daily_sitemaps.database import session_scope

            session_factory = session_scope

        self._key = key
        self._session_factory = session_factory

    async def load(self) -> GenerationProgress:
        async with self._session(operation="load") as session:
            record = await session.get(GenerationStateRecord, self._key)
            if record is None:
                return GenerationProgress()
            return GenerationProgress.from_payload(
                dict(record.payload), stop_requested=record.stop_requested
            )

    async def save(
        self,
        progress: GenerationProgress,
        *,
        stop_requested: bool | None = None,
    ) -> None:
        now = datetime.now(UTC)
        async with self._session(operation="save") as session:
            record = await session.get(GenerationStateRecord, self._key)
            if record is None:
                session.add(
                    GenerationStateRecord(
                        key=self._key,
                        payload=progress.to_payload(),
                        stop_requested=bool(stop_requested),
                        updated_at=now,
                    )
                )
                return
            record.payload = progress.to_payload()
            record.updated_at = now
            if stop_requested is not None:
                record.stop_requested = stop_requested

    async def set_stop_requested(self, value: bool) -> bool:
        async with self._session(operation="set_stop_requested") as session:
            result = await session.execute(
                update(GenerationStateRecord)
                .where(GenerationStateRecord.key == self._key)
                .values(stop_requested=value, updated_at=datetime.now(UTC))
            )
            return bool(result.rowcount)

    @asynccontextmanager
    async def _session(self, *, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as error:
            raise SitemapRepositoryUnavailableError(
                f"Generation state {operation} failed: {error}"
            ) from error


__all__ = [
    "DEFAULT_STATE_KEY",
    "GenerationMode",
    "GenerationProgress",
    "GenerationStateStore",
    "GenerationStatus",
    "SqlAlchemyGenerationStateStore",
]
