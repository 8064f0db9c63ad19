"""
Declarative base for all ORM models.

All models inherit from this Base to share table metadata.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all aibasket ORM models."""

    pass
