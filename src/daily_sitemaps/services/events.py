"""Publish/subscribe notifications for completed sitemap generation."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

EventListener = Callable[[Any], Awaitable[None] | None]

_events_logger = logging.getLogger("daily_sitemaps.events")


@dataclass(slots=True, frozen=True)
class SitemapGenerated:
    """Published once per partition after its documents are stored."""

    date: str
    url_count: int
    generation_time: float
    source: str
    shard_count: int = 1


class EventDispatcher:
    """Deliver events to subscribers without letting them fail the publisher."""

    def __init__(self) -> None:
        self._listeners: defaultdict[type, list[EventListener]] = defaultdict(list)

    def subscribe(self, event_type: type, listener: EventListener) -> None:
        if listener not in self._listeners[event_type]:
            self._listeners[event_type].append(listener)

    def unsubscribe(self, event_type: type, listener: EventListener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: type) -> int:
        return len(self._listeners.get(event_type, []))

    async def publish(self, event: object) -> int:
        """Deliver ``event``; return how many listeners handled it cleanly."""

        delivered = 0
        for listener in list(self._listeners.get(type(event), [])):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _events_logger.exception(
                    "event_listener_failed",
                    extra={
                        "event_type": type(event).__name__,
                        "listener": getattr(listener, "__qualname__", repr(listener)),
                    },
                )
                continue
            delivered += 1
        return delivered


@dataclass(slots=True)
class GenerationStats:
    """Process-lifetime counters fed by ``SitemapGenerated`` events."""

    sitemaps_generated: int = 0
    urls_generated: int = 0
    total_generation_time: float = 0.0
    last_generated_date: str | None = None
    last_generated_at: datetime | None = None
    generated_by_source: dict[str, int] = field(default_factory=dict)

    @property
    def average_generation_time(self) -> float:
        if self.sitemaps_generated == 0:
            return 0.0
        return self.total_generation_time / self.sitemaps_generated


class SitemapStatsListener:
    """Record generation statistics and log each generated partition."""

    def __init__(self, stats: GenerationStats | None = None) -> None:
        self.stats = stats or GenerationStats()

    def __call__(self, event: SitemapGenerated) -> None:
        self.stats.sitemaps_generated += 1
        self.stats.urls_generated += event.url_count
        self.stats.total_generation_time += event.generation_time
        self.stats.last_generated_date = event.date
        self.stats.last_generated_at = datetime.now(UTC)
        self.stats.generated_by_source[event.source] = (
            self.stats.generated_by_source.get(event.source, 0) + 1
        )
        _events_logger.info(
            "sitemap_generated",
            extra={
                "date": event.date,
                "url_count": event.url_count,
                "shard_count": event.shard_count,
                "generation_time_ms": round(event.generation_time * 1000, 2),
                "source": event.source,
            },
        )

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.subscribe(SitemapGenerated, self)


__all__ = [
    "EventDispatcher",
    "EventListener",
    "GenerationStats",
    "SitemapGenerated",
    "SitemapStatsListener",
]
