"""Persisted background generation state ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from daily_sitemaps.models.base import Base


class GenerationStateRecord(Base):
    """Serialized generation progress plus an independent halt flag."""

    __tablename__ = "generation_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    stop_requested: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


__all__ = ["GenerationStateRecord"]
