"""
Async SQLAlchemy engine and session factory.

The engine is created lazily on first use to avoid import-time side effects
(e.g. when running tests that don't need a real DB connection).

Usage::

    from aibasket.db import get_session_factory

    async with get_session_factory()() as session:
        events = await PortfolioEventRepo.list_for_portfolio(session, "default")
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from aibasket.config import settings

logger = logging.getLogger(__name__)

# ── Lazy engine creation ─────────────────────────────────────────────────────

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _get_async_url() -> str:
    """Convert postgresql:// → postgresql+asyncpg://"""
    url = settings.postgres_url
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def get_engine() -> AsyncEngine:
    """Return the async engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _get_async_url(),
            echo=settings.env.value == "development",
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=1800,  # Recycle connections every 30 min
        )
        logger.info("Database engine created: pool_size=5, max_overflow=10")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory, creating it on first call."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory
