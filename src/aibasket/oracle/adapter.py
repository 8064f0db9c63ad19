"""
Price Oracle Adapter — validated, time-bounded reads from a token's feed.

Every read has a deterministic stop: a feed that does not answer within
``oracle_timeout_seconds`` is treated as failed, never waited on.
"""

from __future__ import annotations

import asyncio
import logging

from aibasket.config import settings
from aibasket.exceptions import OracleError
from aibasket.models.types import PriceData, PriceSourceBinding

logger = logging.getLogger(__name__)


class OracleAdapter:
    """Reads and sanity-checks prices from bound feeds."""

    def __init__(
        self,
        max_age_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.max_age_seconds = (
            settings.oracle_max_age_seconds if max_age_seconds is None else max_age_seconds
        )
        self.timeout_seconds = (
            settings.oracle_timeout_seconds if timeout_seconds is None else timeout_seconds
        )

    async def get_price(self, token: str, binding: PriceSourceBinding | None) -> PriceData:
        """Return a fresh, positive price for ``token``.

        Raises:
            OracleError: missing binding, feed failure or timeout, non-positive
                price, stale reading, or decimals differing from the binding.
        """
        if binding is None:
            raise OracleError(f"No price source bound for token {token}")

        try:
            data = await asyncio.wait_for(
                binding.feed.latest_price(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            raise OracleError(
                f"Price feed {binding.feed.feed_id} timed out after {self.timeout_seconds}s"
            ) from exc
        except OracleError:
            raise
        except Exception as exc:
            logger.exception("Price feed %s raised unexpectedly", binding.feed.feed_id)
            raise OracleError(f"Price feed {binding.feed.feed_id} failed: {exc}") from exc

        if data.price <= 0:
            raise OracleError(f"Non-positive price {data.price} for token {token}")
        if data.decimals != binding.decimals:
            raise OracleError(
                f"Feed {binding.feed.feed_id} reports {data.decimals} decimals, "
                f"binding expects {binding.decimals}"
            )
        if self.max_age_seconds > 0 and data.age_seconds > self.max_age_seconds:
            raise OracleError(
                f"Stale price for token {token}: {data.age_seconds:.0f}s old "
                f"(max {self.max_age_seconds:.0f}s)"
            )

        logger.debug("Price %s = %d (decimals=%d)", token, data.price, data.decimals)
        return data
