"""
Basket Portfolio Engine
Handles valuation, target allocations, threshold rebalancing and proportional liquidation.
"""

from .holdings import Holdings
from .registry import AllocationRegistry
from .valuation import PortfolioValuation, ValuationEngine
from .swap import SwapExecutor
from .rebalancer import Rebalancer
from .liquidator import Liquidator
from .manager import BasketPortfolio

__all__ = [
    "Holdings",
    "AllocationRegistry",
    "PortfolioValuation",
    "ValuationEngine",
    "SwapExecutor",
    "Rebalancer",
    "Liquidator",
    "BasketPortfolio",
]
