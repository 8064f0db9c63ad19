"""
Liquidity Liquidator — frees base asset by selling a proportional slice of
every non-base holding, so the portfolio keeps its shape while shrinking.
"""

from __future__ import annotations

import logging

from aibasket.exceptions import OracleError
from aibasket.models.types import LiquidationLeg, LiquidationResult
from aibasket.portfolio.holdings import Holdings
from aibasket.portfolio.registry import AllocationRegistry
from aibasket.portfolio.swap import SwapExecutor
from aibasket.portfolio.valuation import ValuationEngine

logger = logging.getLogger(__name__)


class Liquidator:
    """Sells ``holding_value * needed / total_value`` of each holding."""

    def __init__(
        self,
        registry: AllocationRegistry,
        holdings: Holdings,
        valuation: ValuationEngine,
        swaps: SwapExecutor,
    ) -> None:
        self._registry = registry
        self._holdings = holdings
        self._valuation = valuation
        self._swaps = swaps

    async def liquidate(self, needed: int) -> LiquidationResult:
        """Try to make ``needed`` base asset available.

        ``result.freed`` is what is actually on hand afterwards (capped at
        ``needed``) and can be lower than requested when legs fail.
        """
        result = LiquidationResult(requested=needed)
        if needed <= 0 or not self._registry.allocations:
            return result

        snapshot = await self._valuation.snapshot(strict=False)
        result.total_value = snapshot.total
        if result.total_value == 0:
            return result

        base = self._registry.base_asset
        for token, error in snapshot.errors.items():
            result.legs.append(LiquidationLeg(token=token, error=error))

        for token, holding_value in snapshot.values.items():
            if holding_value == 0:
                continue
            leg = LiquidationLeg(token=token, holding_value=holding_value)
            result.legs.append(leg)
            leg.liquidate_value = holding_value * needed // result.total_value

            try:
                amount = await self._valuation.amount_of(token, leg.liquidate_value)
            except OracleError as exc:
                leg.error = str(exc)
                logger.warning("Liquidation leg %s skipped: %s", token, exc)
                continue

            leg.amount = min(amount, self._holdings.balance_of(token))
            leg.swap = await self._swaps.swap(token, base, leg.amount)

        result.freed = min(self._holdings.balance_of(base), needed)
        logger.info(
            "Liquidation: requested=%d freed=%d total_value=%d swaps=%d",
            needed, result.freed, result.total_value, result.swaps_issued,
        )
        return result
