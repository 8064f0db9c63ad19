"""
Swap Execution Adapter — routes, quotes and executes one swap leg.

A leg never raises. Quote or execution failures and timeouts come back as
a FAILED ``SwapResult``.

Flow for one leg:
1. No-op when ``from == to`` or ``amount == 0``
2. Route direct when either side is the bridge token, else via the bridge
3. Quote the route; abandon on failure (nothing approved yet)
4. ``min_out = expected * (10000 - max_slippage_bps) / 10000``
5. Approve exactly ``amount`` to the exchange, execute, then reset the
   allowance to zero whatever the outcome
"""

from __future__ import annotations

import asyncio
import logging

from aibasket.audit.event_log import EventLog
from aibasket.config import settings
from aibasket.exceptions import SwapFailure
from aibasket.exchange.base import ExchangeAdapter
from aibasket.models.enums import EventType, LegStatus
from aibasket.models.types import BPS_DENOMINATOR, SwapResult
from aibasket.portfolio.holdings import Holdings, normalize_token

logger = logging.getLogger(__name__)


class SwapExecutor:
    """Executes best-effort swaps against an exchange on behalf of the holdings."""

    def __init__(
        self,
        exchange: ExchangeAdapter,
        holdings: Holdings,
        events: EventLog,
        *,
        bridge_token: str | None = None,
        max_slippage_bps: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._exchange = exchange
        self._holdings = holdings
        self._events = events
        self.bridge_token = normalize_token(bridge_token or settings.bridge_token)
        self.max_slippage_bps = (
            settings.max_slippage_bps if max_slippage_bps is None else max_slippage_bps
        )
        self.timeout_seconds = (
            settings.exchange_timeout_seconds if timeout_seconds is None else timeout_seconds
        )

    def build_route(self, from_token: str, to_token: str) -> list[str]:
        from_token, to_token = normalize_token(from_token), normalize_token(to_token)
        if from_token == to_token or self.bridge_token in (from_token, to_token):
            return [from_token, to_token]
        return [from_token, self.bridge_token, to_token]

    def min_amount_out(self, expected_out: int) -> int:
        return expected_out * (BPS_DENOMINATOR - self.max_slippage_bps) // BPS_DENOMINATOR

    async def swap(self, from_token: str, to_token: str, amount: int) -> SwapResult:
        from_token, to_token = normalize_token(from_token), normalize_token(to_token)
        result = SwapResult(
            from_token=from_token,
            to_token=to_token,
            amount_in=amount,
            status=LegStatus.SKIPPED,
        )
        if from_token == to_token or amount <= 0:
            result.reason = "same token" if from_token == to_token else "zero amount"
            return result

        result.route = self.build_route(from_token, to_token)

        balance = self._holdings.balance_of(from_token)
        if balance < amount:
            return await self._fail(result, f"insufficient balance: {balance} < {amount}")

        # 1. Quote: nothing is approved yet, so a failure changes no state
        try:
            amounts = await asyncio.wait_for(
                self._exchange.get_amounts_out(amount, result.route),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return await self._fail(result, "quote timed out")
        except SwapFailure as exc:
            return await self._fail(result, f"quote failed: {exc}")
        except Exception as exc:
            logger.exception("Unexpected quote error for %s", result.route)
            return await self._fail(result, f"quote failed: {exc}")

        if len(amounts) != len(result.route):
            return await self._fail(
                result, f"quote returned {len(amounts)} amounts for a {len(result.route)}-token route"
            )
        result.expected_out = amounts[-1]
        result.min_amount_out = self.min_amount_out(result.expected_out)
        if result.expected_out <= 0:
            return await self._fail(result, "quote returned zero output")

        # 2. Approve exactly the input and execute; the allowance ends at zero on every path
        spender = self._exchange.spender
        self._holdings.approve(from_token, spender, amount)
        try:
            amount_out = await asyncio.wait_for(
                self._exchange.swap_exact_tokens_for_tokens(
                    amount, result.min_amount_out, result.route
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._holdings.approve(from_token, spender, 0)
            return await self._fail(result, "swap timed out")
        except SwapFailure as exc:
            self._holdings.approve(from_token, spender, 0)
            return await self._fail(result, f"swap failed: {exc}")
        except Exception as exc:
            self._holdings.approve(from_token, spender, 0)
            logger.exception("Unexpected swap error for %s", result.route)
            return await self._fail(result, f"swap failed: {exc}")

        self._holdings.approve(from_token, spender, 0)
        self._holdings.debit(from_token, amount)
        self._holdings.credit(to_token, amount_out)

        result.amount_out = amount_out
        result.status = LegStatus.EXECUTED
        logger.info(
            "Swap executed %s: in=%d out=%d (min %d)",
            " -> ".join(result.route), amount, amount_out, result.min_amount_out,
        )
        await self._events.emit(
            EventType.SWAP_EXECUTED,
            route=result.route,
            amount_in=amount,
            amount_out=amount_out,
            min_amount_out=result.min_amount_out,
        )
        return result

    async def _fail(self, result: SwapResult, reason: str) -> SwapResult:
        result.status = LegStatus.FAILED
        result.reason = reason
        logger.warning(
            "Swap %s -> %s for %d not executed: %s",
            result.from_token, result.to_token, result.amount_in, reason,
        )
        await self._events.emit(
            EventType.SWAP_FAILED,
            route=result.route,
            amount_in=result.amount_in,
            reason=reason,
        )
        return result
