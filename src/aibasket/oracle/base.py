"""
Abstract base class for price feeds.

Every token priced by the engine is bound to exactly one feed. Feeds report
an integer price scaled by their own number of decimals, plus the time the
price was last updated, so the adapter can flag stale readings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from aibasket.models.types import PriceData


class PriceFeed(ABC):
    """Abstract price source interface."""

    @property
    @abstractmethod
    def feed_id(self) -> str:
        """Identifier of the external source (used in events and logs)."""
        ...

    @abstractmethod
    async def latest_price(self) -> PriceData:
        """Return the most recent price reading."""
        ...
