"""
Threshold-gated rebalancing toward the Target Portfolio.
Buys underweight tokens with the base asset and sells overweight ones back.
"""

from __future__ import annotations

import logging

from aibasket.config import settings
from aibasket.exceptions import OracleError
from aibasket.models.enums import TradeAction
from aibasket.models.types import BPS_DENOMINATOR, RebalanceLeg, RebalanceResult
from aibasket.portfolio.holdings import Holdings
from aibasket.portfolio.registry import AllocationRegistry
from aibasket.portfolio.swap import SwapExecutor
from aibasket.portfolio.valuation import ValuationEngine

logger = logging.getLogger(__name__)


def decide(target_value: int, current_value: int, threshold: int) -> tuple[TradeAction, int]:
    """Return the action for one allocation and the base-asset value to trade."""
    if current_value + threshold < target_value:
        return TradeAction.BUY, target_value - current_value
    if current_value > target_value + threshold:
        return TradeAction.SELL, current_value - target_value
    return TradeAction.HOLD, 0


class Rebalancer:
    """Single-pass rebalancer over the registry's allocations, in registry order.

    Each swap changes the base balance seen by later allocations in the same
    pass; the pass is not iterated to a fixed point.
    """

    def __init__(
        self,
        registry: AllocationRegistry,
        holdings: Holdings,
        valuation: ValuationEngine,
        swaps: SwapExecutor,
        threshold_bps: int | None = None,
    ) -> None:
        self._registry = registry
        self._holdings = holdings
        self._valuation = valuation
        self._swaps = swaps
        self.threshold_bps = (
            settings.rebalance_threshold_bps if threshold_bps is None else threshold_bps
        )

    def threshold_for(self, total_value: int) -> int:
        return total_value * self.threshold_bps // BPS_DENOMINATOR

    async def rebalance(self) -> RebalanceResult:
        """Run one pass. Never raises for oracle or swap trouble; see ``RebalanceResult``."""
        total_value = await self._valuation.total_value(strict=False)
        result = RebalanceResult(total_value=total_value, threshold=self.threshold_for(total_value))
        if total_value == 0:
            logger.info("Rebalance skipped: portfolio is empty")
            return result

        base = self._registry.base_asset
        for alloc in self._registry.allocations:
            leg = RebalanceLeg(token=alloc.token, weight_bps=alloc.weight_bps)
            result.legs.append(leg)
            leg.target_value = total_value * alloc.weight_bps // BPS_DENOMINATOR

            try:
                leg.current_value = await self._valuation.holding_value(alloc.token)
            except OracleError as exc:
                leg.error = str(exc)
                logger.warning("Rebalance leg %s skipped: %s", alloc.token, exc)
                continue

            leg.action, leg.delta_value = decide(
                leg.target_value, leg.current_value, result.threshold
            )

            if leg.action == TradeAction.BUY:
                leg.swap = await self._swaps.swap(base, alloc.token, leg.delta_value)

            elif leg.action == TradeAction.SELL:
                try:
                    amount = await self._valuation.amount_of(alloc.token, leg.delta_value)
                except OracleError as exc:
                    leg.error = str(exc)
                    logger.warning("Rebalance leg %s skipped: %s", alloc.token, exc)
                    continue
                amount = min(amount, self._holdings.balance_of(alloc.token))
                leg.swap = await self._swaps.swap(alloc.token, base, amount)

        logger.info(
            "Rebalance pass: total=%d threshold=%d legs=%d executed=%d failed=%d",
            total_value, result.threshold, len(result.legs),
            len(result.executed), len(result.failed),
        )
        return result
