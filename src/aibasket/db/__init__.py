"""
Database package — async SQLAlchemy engine, session, and ORM models.
"""

from aibasket.db.engine import get_engine, get_session_factory

__all__ = ["get_engine", "get_session_factory"]
