"""Core enums used throughout the portfolio engine."""

from __future__ import annotations

from enum import Enum


# ─── Trading Decisions ─────────────────────────────────────────────────────────


class TradeAction(str, Enum):
    """Decision taken for one allocation during a rebalance pass."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class LegStatus(str, Enum):
    """Outcome of a single swap leg."""

    EXECUTED = "EXECUTED"
    SKIPPED = "SKIPPED"  # No-op: same token or zero amount
    FAILED = "FAILED"


# ─── Access Control ────────────────────────────────────────────────────────────


class CallerRole(str, Enum):
    POOL = "POOL"
    ADMIN = "ADMIN"


# ─── Events ────────────────────────────────────────────────────────────────────


class EventType(str, Enum):
    """Structured events emitted by state-changing operations."""

    ALLOCATIONS_SET = "ALLOCATIONS_SET"
    ALLOCATIONS_CLEARED = "ALLOCATIONS_CLEARED"
    TOKEN_ALLOWED = "TOKEN_ALLOWED"
    TOKEN_DISALLOWED = "TOKEN_DISALLOWED"
    PRICE_SOURCE_SET = "PRICE_SOURCE_SET"
    FUNDS_RECEIVED = "FUNDS_RECEIVED"
    FUNDS_RELEASED = "FUNDS_RELEASED"
    SWAP_EXECUTED = "SWAP_EXECUTED"
    SWAP_FAILED = "SWAP_FAILED"
    REBALANCED = "REBALANCED"
    LIQUIDATED = "LIQUIDATED"
    EMERGENCY_EXIT = "EMERGENCY_EXIT"
    EMERGENCY_WITHDRAW = "EMERGENCY_WITHDRAW"
