"""Core data types (dataclasses) used throughout the portfolio engine.

All token quantities and base-asset values are Python ints expressed in the
token's native unit, so conversions never go through floating point.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from aibasket.models.enums import EventType, LegStatus, TradeAction

if TYPE_CHECKING:
    from aibasket.oracle.base import PriceFeed

BPS_DENOMINATOR = 10_000


# ─── Allocations & Tokens ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Allocation:
    """Target weight of one token, in basis points of Total Value."""

    token: str
    weight_bps: int


@dataclass(frozen=True, slots=True)
class TokenInfo:
    """Static token metadata."""

    token: str
    decimals: int
    symbol: str = ""


@dataclass(slots=True)
class PriceSourceBinding:
    """One price feed per token and the decimals that feed reports in."""

    feed: PriceFeed
    decimals: int


@dataclass(frozen=True, slots=True)
class PriceData:
    """A single oracle reading."""

    price: int
    decimals: int
    updated_at: float

    @property
    def age_seconds(self) -> float:
        return time.time() - self.updated_at


# ─── Swaps ─────────────────────────────────────────────────────────────────────


@dataclass
class SwapResult:
    """Outcome of one swap attempt through the exchange."""

    from_token: str
    to_token: str
    amount_in: int
    status: LegStatus
    route: list[str] = field(default_factory=list)
    expected_out: int = 0
    min_amount_out: int = 0
    amount_out: int = 0
    reason: str = ""

    @property
    def executed(self) -> bool:
        return self.status == LegStatus.EXECUTED

    def __bool__(self) -> bool:
        return self.executed


# ─── Rebalance ─────────────────────────────────────────────────────────────────


@dataclass
class RebalanceLeg:
    """Decision and outcome for one allocation within a rebalance pass."""

    token: str
    weight_bps: int
    target_value: int = 0
    current_value: int = 0
    action: TradeAction = TradeAction.HOLD
    delta_value: int = 0  # Base-asset value to buy or sell
    swap: SwapResult | None = None
    error: str = ""

    @property
    def status(self) -> LegStatus:
        if self.error:
            return LegStatus.FAILED
        if self.swap is None:
            return LegStatus.SKIPPED
        return self.swap.status


@dataclass
class RebalanceResult:
    """Per-pass record of which legs executed, failed or were left alone."""

    total_value: int
    threshold: int
    legs: list[RebalanceLeg] = field(default_factory=list)

    @property
    def executed(self) -> list[RebalanceLeg]:
        return [leg for leg in self.legs if leg.status == LegStatus.EXECUTED]

    @property
    def failed(self) -> list[RebalanceLeg]:
        return [leg for leg in self.legs if leg.status == LegStatus.FAILED]

    @property
    def swaps_issued(self) -> int:
        return sum(
            1 for leg in self.legs
            if leg.swap is not None and leg.swap.status != LegStatus.SKIPPED
        )

    @property
    def is_complete(self) -> bool:
        return not self.failed


# ─── Liquidation ───────────────────────────────────────────────────────────────


@dataclass
class LiquidationLeg:
    """One holding's share of a liquidation."""

    token: str
    holding_value: int = 0
    liquidate_value: int = 0
    amount: int = 0
    swap: SwapResult | None = None
    error: str = ""

    @property
    def status(self) -> LegStatus:
        if self.error:
            return LegStatus.FAILED
        if self.swap is None:
            return LegStatus.SKIPPED
        return self.swap.status


@dataclass
class LiquidationResult:
    """Outcome of a funds request; ``freed`` may be below ``requested``."""

    requested: int
    freed: int = 0
    total_value: int = 0
    legs: list[LiquidationLeg] = field(default_factory=list)

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.freed, 0)

    @property
    def swaps_issued(self) -> int:
        return sum(
            1 for leg in self.legs
            if leg.swap is not None and leg.swap.status != LegStatus.SKIPPED
        )


@dataclass
class EmergencyExitResult:
    """Outcome of selling every non-base holding back to the base asset."""

    legs: list[SwapResult] = field(default_factory=list)
    base_balance: int = 0

    @property
    def failed(self) -> list[SwapResult]:
        return [s for s in self.legs if s.status == LegStatus.FAILED]


# ─── Events ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PortfolioEvent:
    """Structured record of one state change."""

    event_type: EventType
    sequence: int
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
