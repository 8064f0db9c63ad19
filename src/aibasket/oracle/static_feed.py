"""
Static price feed — in-memory price source for paper runs and tests.

Usage::

    feed = StaticPriceFeed("eth-usd", price=2_000 * 10**8, decimals=8)
    feed.set_price(2_100 * 10**8)
"""

from __future__ import annotations

import time

from aibasket.models.types import PriceData
from aibasket.oracle.base import PriceFeed


class StaticPriceFeed(PriceFeed):
    """Price feed whose value is set by hand."""

    def __init__(
        self,
        feed_id: str,
        price: int,
        decimals: int = 8,
        updated_at: float | None = None,
    ) -> None:
        self._feed_id = feed_id
        self._price = price
        self._decimals = decimals
        self._updated_at = time.time() if updated_at is None else updated_at
        self.reads = 0

    @property
    def feed_id(self) -> str:
        return self._feed_id

    def set_price(self, price: int, updated_at: float | None = None) -> None:
        """Update the reported price (and refresh the timestamp)."""
        self._price = price
        self._updated_at = time.time() if updated_at is None else updated_at

    async def latest_price(self) -> PriceData:
        self.reads += 1
        return PriceData(
            price=self._price,
            decimals=self._decimals,
            updated_at=self._updated_at,
        )
