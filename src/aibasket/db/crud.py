"""
CRUD repository for the portfolio event history.

Usage::

    from aibasket.db.crud import PortfolioEventRepo

    async with get_session_factory()() as db:
        await PortfolioEventRepo.record(db, portfolio_id="default", event=event)
        await db.commit()
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from aibasket.db.models import PortfolioEventRecord
from aibasket.models.types import PortfolioEvent


class PortfolioEventRepo:
    """Append/read access to ``portfolio_events``."""

    @staticmethod
    async def record(
        db: AsyncSession,
        *,
        portfolio_id: str,
        event: PortfolioEvent,
    ) -> PortfolioEventRecord:
        entry = PortfolioEventRecord(
            portfolio_id=portfolio_id,
            sequence=event.sequence,
            event_type=event.event_type.value,
            details=event.details,
            occurred_at=datetime.fromtimestamp(event.timestamp, tz=timezone.utc),
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def list_for_portfolio(
        db: AsyncSession,
        portfolio_id: str,
        *,
        event_type: str | None = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[PortfolioEventRecord]:
        stmt = (
            select(PortfolioEventRecord)
            .where(PortfolioEventRecord.portfolio_id == portfolio_id)
            .order_by(PortfolioEventRecord.sequence.asc())
            .limit(limit)
            .offset(offset)
        )
        if event_type:
            stmt = stmt.where(PortfolioEventRecord.event_type == event_type)
        result = await db.execute(stmt)
        return list(result.scalars().all())
