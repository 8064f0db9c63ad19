"""
HTTP price feed — reads aggregator rounds from a JSON oracle endpoint.

The endpoint mirrors an on-chain aggregator's ``latestRoundData``::

    GET {base_url}/feeds/{feed_id}/latest
    {"answer": "200012345678", "decimals": 8, "updatedAt": 1717171717}

``answer`` may be a string or an integer (large values are sent as
strings to survive JSON number limits).
"""

from __future__ import annotations

import logging

import httpx

from aibasket.config import settings
from aibasket.exceptions import OracleError
from aibasket.models.types import PriceData
from aibasket.oracle.base import PriceFeed

logger = logging.getLogger(__name__)


class HttpPriceFeed(PriceFeed):
    """Price feed backed by a remote oracle HTTP API.

    Usage::

        feed = HttpPriceFeed("eth-usd")
        reading = await feed.latest_price()
    """

    def __init__(
        self,
        feed_id: str,
        *,
        base_url: str | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._feed_id = feed_id
        self._base_url = (base_url or settings.oracle_base_url).rstrip("/")
        # a shared client belongs to the caller and outlives the feed
        self._owns_http = http is None
        self._http = http if http is not None else httpx.AsyncClient(
            timeout=settings.oracle_timeout_seconds
        )

    @property
    def feed_id(self) -> str:
        return self._feed_id

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def latest_price(self) -> PriceData:
        url = f"{self._base_url}/feeds/{self._feed_id}/latest"
        try:
            resp = await self._http.get(url)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise OracleError(f"Price feed {self._feed_id} unreachable: {exc}") from exc
        except ValueError as exc:
            raise OracleError(f"Price feed {self._feed_id} returned invalid JSON") from exc

        try:
            return PriceData(
                price=int(data["answer"]),
                decimals=int(data["decimals"]),
                updated_at=float(data["updatedAt"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed round from feed %s: %s", self._feed_id, data)
            raise OracleError(f"Price feed {self._feed_id} returned a malformed round") from exc
