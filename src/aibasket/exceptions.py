"""
Exception hierarchy for the portfolio engine.

Validation and authorization errors are hard failures returned to the
caller. Oracle errors propagate from direct valuation but are downgraded to
a skipped leg inside batch passes. Swap failures never escape the swap
executor; they are recorded on the leg result instead.
"""

from __future__ import annotations


class BasketError(Exception):
    """Base class for all portfolio engine errors."""


class ValidationError(BasketError):
    """Malformed or disallowed input to a registry-mutating call."""


class OracleError(BasketError):
    """Missing, stale, non-positive, or mismatched-precision price data."""


class SwapFailure(BasketError):
    """Route quote or swap execution failed."""


class AuthorizationError(BasketError):
    """Caller is not allowed to invoke a pool-only or admin-only operation."""
