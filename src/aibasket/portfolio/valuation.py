"""
Valuation Engine — token amounts to base-asset value and back.

Conversions are one integer multiply-then-divide. Token decimals and feed
decimals are normalized together: the feed decimals cancel out (both feeds
must report the same precision) and the signed difference between token
and base-asset decimals decides whether the power of ten scales the
numerator or the denominator. Rounding is floor in both directions, so the
engine slightly under-values holdings rather than over-valuing them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from aibasket.exceptions import OracleError
from aibasket.oracle.adapter import OracleAdapter
from aibasket.portfolio.holdings import Holdings, normalize_token
from aibasket.portfolio.registry import AllocationRegistry

logger = logging.getLogger(__name__)


@dataclass
class PortfolioValuation:
    """Point-in-time valuation of every tracked holding, in base-asset units."""

    base_balance: int
    values: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)  # token -> oracle failure

    @property
    def total(self) -> int:
        return self.base_balance + sum(self.values.values())


class ValuationEngine:
    """Prices holdings through the registry's price bindings."""

    def __init__(
        self,
        registry: AllocationRegistry,
        holdings: Holdings,
        oracle: OracleAdapter | None = None,
    ) -> None:
        self._registry = registry
        self._holdings = holdings
        self._oracle = oracle or OracleAdapter()

    @property
    def base_asset(self) -> str:
        return self._registry.base_asset

    async def _price_pair(self, token: str) -> tuple[int, int]:
        """Return ``(token_price, base_price)`` read from bindings of equal precision."""
        token_binding = self._registry.binding_for(token)
        base_binding = self._registry.binding_for(self.base_asset)
        if token_binding is None:
            raise OracleError(f"No price source bound for token {token}")
        if base_binding is None:
            raise OracleError("No price source bound for the base asset")
        if token_binding.decimals != base_binding.decimals:
            raise OracleError(
                f"Price precision mismatch for {token}: "
                f"{token_binding.decimals} vs base {base_binding.decimals}"
            )

        token_price = await self._oracle.get_price(token, token_binding)
        base_price = await self._oracle.get_price(self.base_asset, base_binding)
        return token_price.price, base_price.price

    async def value_of(self, token: str, amount: int) -> int:
        """Base-asset value of ``amount`` units of ``token``."""
        token = normalize_token(token)
        if token == self.base_asset:
            return amount

        token_price, base_price = await self._price_pair(token)
        exponent = self._holdings.decimals_of(self.base_asset) - self._holdings.decimals_of(token)

        numerator = amount * token_price
        denominator = base_price
        if exponent >= 0:
            numerator *= 10**exponent
        else:
            denominator *= 10**-exponent
        return numerator // denominator

    async def amount_of(self, token: str, value: int) -> int:
        """Units of ``token`` worth ``value`` of the base asset."""
        token = normalize_token(token)
        if token == self.base_asset:
            return value

        token_price, base_price = await self._price_pair(token)
        exponent = self._holdings.decimals_of(token) - self._holdings.decimals_of(self.base_asset)

        numerator = value * base_price
        denominator = token_price
        if exponent >= 0:
            numerator *= 10**exponent
        else:
            denominator *= 10**-exponent
        return numerator // denominator

    async def holding_value(self, token: str) -> int:
        return await self.value_of(token, self._holdings.balance_of(token))

    async def snapshot(self, *, strict: bool = True) -> PortfolioValuation:
        """Value every tracked holding.

        In strict mode the first ``OracleError`` propagates. Otherwise the
        unpriceable holding is logged, recorded in ``errors`` and left out
        of the total.
        """
        valuation = PortfolioValuation(base_balance=self._holdings.balance_of(self.base_asset))
        for token in self._registry.tracked_tokens():
            balance = self._holdings.balance_of(token)
            if balance == 0:
                continue
            try:
                valuation.values[token] = await self.value_of(token, balance)
            except OracleError as exc:
                if strict:
                    raise
                logger.warning("Excluding %s from valuation: %s", token, exc)
                valuation.errors[token] = str(exc)
        return valuation

    async def total_value(self, *, strict: bool = True) -> int:
        """Total Value in base-asset units, recomputed from live prices every call."""
        return (await self.snapshot(strict=strict)).total
