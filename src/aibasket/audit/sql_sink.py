"""
Event sink that persists portfolio events through ``PortfolioEventRepo``.

Each event is written in its own session/transaction so a failed write
cannot leave a half-committed batch behind.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from aibasket.db.crud import PortfolioEventRepo
from aibasket.db.engine import get_session_factory
from aibasket.models.types import PortfolioEvent

logger = logging.getLogger(__name__)


class SqlEventSink:
    """Async callable usable as an ``EventLog`` sink."""

    def __init__(
        self,
        portfolio_id: str = "default",
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.portfolio_id = portfolio_id
        self._session_factory = session_factory

    async def __call__(self, event: PortfolioEvent) -> None:
        factory = self._session_factory or get_session_factory()
        async with factory() as session:
            await PortfolioEventRepo.record(
                session, portfolio_id=self.portfolio_id, event=event
            )
            await session.commit()
        logger.debug("Persisted event %s#%d", self.portfolio_id, event.sequence)
