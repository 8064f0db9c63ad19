"""
SQLAlchemy ORM models for the portfolio event history.

Events are append-only; the history of a portfolio can be reconstructed
by replaying ``portfolio_events`` ordered by ``sequence``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, Integer, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from aibasket.db.base import Base


# ── Helpers ──────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
_DetailsType = JSON().with_variant(JSONB(), "postgresql")


# ── Portfolio Events ─────────────────────────────────────────────────────────


class PortfolioEventRecord(Base):
    """One structured portfolio event (allocation change, swap, liquidation...)."""

    __tablename__ = "portfolio_events"
    __table_args__ = (
        Index("ix_portfolio_event_seq", "portfolio_id", "sequence"),
        Index("ix_portfolio_event_type", "event_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid)
    portfolio_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[dict | None] = mapped_column(_DetailsType)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<PortfolioEvent {self.portfolio_id}#{self.sequence} {self.event_type}>"
