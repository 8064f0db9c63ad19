"""
Paper Exchange — simulated router for paper runs and testing.

Quotes every hop from per-token reference prices, charges a flat fee,
and can be told to fail quotes or swaps for particular tokens, or to fill
below the quote (execution drift) to exercise the slippage guard. Behaves
like the HTTP router so the swap executor doesn't know the difference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from aibasket.exceptions import SwapFailure
from aibasket.exchange.base import ExchangeAdapter
from aibasket.models.types import BPS_DENOMINATOR
from aibasket.portfolio.holdings import Holdings, normalize_token

logger = logging.getLogger(__name__)


@dataclass
class PaperFill:
    """A simulated swap record."""

    path: list[str]
    amount_in: int
    amount_out: int
    amount_out_min: int


class PaperExchange(ExchangeAdapter):
    """Simulated router.

    Usage:
        exchange = PaperExchange(holdings=holdings)
        exchange.set_price(USDC, 1 * 10**8, decimals=6)
        exchange.set_price(WETH, 2_000 * 10**8, decimals=18)
        await exchange.get_amounts_out(1_000 * 10**6, [USDC, WETH])
    """

    def __init__(
        self,
        holdings: Holdings | None = None,
        *,
        spender: str = "paper-router",
        fee_bps: int = 0,
    ) -> None:
        self._holdings = holdings
        self._spender = spender
        self.fee_bps = fee_bps
        self.drift_bps = 0  # Fill this far below the quote
        self._prices: dict[str, tuple[int, int]] = {}  # token -> (price, token decimals)
        self.failing_quotes: set[str] = set()
        self.failing_swaps: set[str] = set()
        self.fills: list[PaperFill] = []
        self.quotes = 0

    # ─── Market Setup ──────────────────────────────────────────────────────

    @property
    def spender(self) -> str:
        return self._spender

    def set_price(self, token: str, price: int, decimals: int) -> None:
        """Reference price of one whole token (any common scale)."""
        self._prices[normalize_token(token)] = (price, decimals)

    def fail_quotes_for(self, token: str) -> None:
        self.failing_quotes.add(normalize_token(token))

    def fail_swaps_for(self, token: str) -> None:
        self.failing_swaps.add(normalize_token(token))

    # ─── ExchangeAdapter Interface ─────────────────────────────────────────

    async def get_amounts_out(self, amount_in: int, path: list[str]) -> list[int]:
        self.quotes += 1
        if len(path) < 2:
            raise SwapFailure(f"Invalid path {path}")
        if any(normalize_token(t) in self.failing_quotes for t in path):
            raise SwapFailure(f"No liquidity for route {' -> '.join(path)}")

        amounts = [amount_in]
        for token_in, token_out in zip(path, path[1:]):
            amounts.append(self._hop(amounts[-1], token_in, token_out))
        return amounts

    async def swap_exact_tokens_for_tokens(
        self,
        amount_in: int,
        amount_out_min: int,
        path: list[str],
    ) -> int:
        if any(normalize_token(t) in self.failing_swaps for t in path):
            raise SwapFailure(f"Swap reverted for route {' -> '.join(path)}")

        if self._holdings is not None:
            allowed = self._holdings.allowance(path[0], self._spender)
            if allowed < amount_in:
                raise SwapFailure(f"Insufficient allowance: {allowed} < {amount_in}")
            if self._holdings.balance_of(path[0]) < amount_in:
                raise SwapFailure("Insufficient balance for transfer")

        quoted = (await self.get_amounts_out(amount_in, path))[-1]
        amount_out = quoted * (BPS_DENOMINATOR - self.drift_bps) // BPS_DENOMINATOR
        if amount_out < amount_out_min:
            raise SwapFailure(
                f"Insufficient output amount: {amount_out} < {amount_out_min}"
            )

        self.fills.append(PaperFill(list(path), amount_in, amount_out, amount_out_min))
        logger.info("PAPER SWAP %s: %d -> %d", " -> ".join(path), amount_in, amount_out)
        return amount_out

    # ─── Pricing ──────────────────────────────────────────────────────────

    def _hop(self, amount_in: int, token_in: str, token_out: str) -> int:
        try:
            price_in, dec_in = self._prices[normalize_token(token_in)]
            price_out, dec_out = self._prices[normalize_token(token_out)]
        except KeyError as exc:
            raise SwapFailure(f"No market for {token_in} -> {token_out}") from exc

        gross = amount_in * price_in * 10**dec_out // (price_out * 10**dec_in)
        return gross * (BPS_DENOMINATOR - self.fee_bps) // BPS_DENOMINATOR
