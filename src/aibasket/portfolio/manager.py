"""
Orchestrates the basket portfolio for the pool and the administrator.

Every public operation runs under one ``asyncio.Lock`` so the Total Value
computed at the start of a pass stays consistent with the holdings read
during it. Authorization and validation happen before any mutation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from aibasket.audit.event_log import EventLog
from aibasket.audit.sql_sink import SqlEventSink
from aibasket.config import settings
from aibasket.exceptions import AuthorizationError, ValidationError
from aibasket.exchange.base import ExchangeAdapter
from aibasket.models.enums import CallerRole, EventType
from aibasket.models.types import (
    Allocation,
    EmergencyExitResult,
    LiquidationResult,
    RebalanceResult,
)
from aibasket.oracle.adapter import OracleAdapter
from aibasket.oracle.base import PriceFeed
from aibasket.portfolio.holdings import Holdings, normalize_token
from aibasket.portfolio.liquidator import Liquidator
from aibasket.portfolio.rebalancer import Rebalancer
from aibasket.portfolio.registry import AllocationRegistry
from aibasket.portfolio.swap import SwapExecutor
from aibasket.portfolio.valuation import ValuationEngine

logger = logging.getLogger(__name__)


class BasketPortfolio:
    """Facade for the allocation, valuation, rebalancing and liquidation engine.

    Usage::

        portfolio = BasketPortfolio(exchange=PaperExchange())
        await portfolio.allow_token(WETH, decimals=18, caller="admin")
        await portfolio.set_price_source(WETH, weth_feed, 8, caller="admin")
        await portfolio.set_allocations([Allocation(WETH, 6000)], caller="admin")
        await portfolio.invest(1_000 * 10**18, caller="vault")
    """

    def __init__(
        self,
        exchange: ExchangeAdapter,
        *,
        base_asset: str | None = None,
        base_decimals: int | None = None,
        pool: str | None = None,
        admin: str | None = None,
        withdraw_destination: str | None = None,
        oracle: OracleAdapter | None = None,
        events: EventLog | None = None,
        holdings: Holdings | None = None,
        bridge_token: str | None = None,
        max_allocations: int | None = None,
        threshold_bps: int | None = None,
        max_slippage_bps: int | None = None,
    ) -> None:
        self.pool = pool or settings.pool_principal
        self.admin = admin or settings.admin_principal
        self.withdraw_destination = withdraw_destination or settings.admin_withdraw_destination

        self.holdings = holdings if holdings is not None else Holdings()
        self.events = events if events is not None else EventLog()
        if settings.persist_events:
            self.events.add_sink(SqlEventSink())
        base = normalize_token(base_asset or settings.base_asset)
        self.holdings.register_token(
            base, settings.base_asset_decimals if base_decimals is None else base_decimals
        )

        self.registry = AllocationRegistry(base, self.holdings, max_allocations)
        self.valuation = ValuationEngine(self.registry, self.holdings, oracle)
        self.swaps = SwapExecutor(
            exchange,
            self.holdings,
            self.events,
            bridge_token=bridge_token,
            max_slippage_bps=max_slippage_bps,
        )
        self.rebalancer = Rebalancer(
            self.registry, self.holdings, self.valuation, self.swaps, threshold_bps
        )
        self.liquidator = Liquidator(self.registry, self.holdings, self.valuation, self.swaps)
        self._lock = asyncio.Lock()

    @property
    def base_asset(self) -> str:
        return self.registry.base_asset

    # ─── Access control ───────────────────────────────────────────────────

    def role_of(self, caller: str) -> CallerRole | None:
        if caller == self.admin:
            return CallerRole.ADMIN
        if caller == self.pool:
            return CallerRole.POOL
        return None

    def _require(self, caller: str, *roles: CallerRole) -> None:
        if self.role_of(caller) not in roles:
            raise AuthorizationError(
                f"Caller {caller!r} is not permitted (requires {'/'.join(r.value for r in roles)})"
            )

    # ─── Pool: funds in ───────────────────────────────────────────────────

    async def receive(self, amount: int, *, caller: str) -> None:
        """Phase one of a deposit: take ownership of ``amount`` base asset."""
        self._require(caller, CallerRole.POOL)
        async with self._lock:
            await self._receive(amount)

    async def on_received(self, amount: int, *, caller: str) -> RebalanceResult | None:
        """Phase two of a deposit: put received funds to work."""
        self._require(caller, CallerRole.POOL)
        async with self._lock:
            return await self._after_receive(amount)

    async def invest(self, amount: int, *, caller: str) -> RebalanceResult | None:
        """Receive ``amount`` and rebalance into the Target Portfolio, atomically."""
        self._require(caller, CallerRole.POOL)
        async with self._lock:
            await self._receive(amount)
            return await self._after_receive(amount)

    async def _receive(self, amount: int) -> None:
        if amount <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        self.holdings.credit(self.base_asset, amount)
        await self.events.emit(EventType.FUNDS_RECEIVED, amount=amount)

    async def _after_receive(self, amount: int) -> RebalanceResult | None:
        if not self.registry.allocations:
            logger.info("Received %d with no target portfolio; holding as base asset", amount)
            return None
        return await self._rebalance()

    # ─── Pool: funds out ──────────────────────────────────────────────────

    async def free_funds(self, amount: int, *, caller: str) -> int:
        """Release up to ``amount`` base asset to the pool; returns what was released."""
        self._require(caller, CallerRole.POOL)
        if amount <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        async with self._lock:
            on_hand = self.holdings.balance_of(self.base_asset)
            if on_hand < amount:
                await self._liquidate(amount - on_hand)

            released = min(amount, self.holdings.balance_of(self.base_asset))
            self.holdings.debit(self.base_asset, released)
            await self.events.emit(
                EventType.FUNDS_RELEASED, requested=amount, released=released
            )
            if released < amount:
                logger.warning("Funds request short: requested=%d released=%d", amount, released)
            return released

    async def liquidate(self, needed: int, *, caller: str) -> LiquidationResult:
        """Convert a proportional slice of holdings into base asset (no transfer)."""
        self._require(caller, CallerRole.POOL, CallerRole.ADMIN)
        async with self._lock:
            return await self._liquidate(needed)

    async def _liquidate(self, needed: int) -> LiquidationResult:
        result = await self.liquidator.liquidate(needed)
        await self.events.emit(
            EventType.LIQUIDATED,
            requested=result.requested,
            freed=result.freed,
            total_value=result.total_value,
            swaps=result.swaps_issued,
        )
        return result

    # ─── Rebalancing ──────────────────────────────────────────────────────

    async def rebalance(self, *, caller: str) -> RebalanceResult:
        self._require(caller, CallerRole.POOL, CallerRole.ADMIN)
        async with self._lock:
            return await self._rebalance()

    async def _rebalance(self) -> RebalanceResult:
        result = await self.rebalancer.rebalance()
        if result.swaps_issued:
            await self.events.emit(
                EventType.REBALANCED,
                total_value=result.total_value,
                threshold=result.threshold,
                executed=[leg.token for leg in result.executed],
                failed=[leg.token for leg in result.failed],
            )
        return result

    # ─── Admin: registry ──────────────────────────────────────────────────

    async def set_allocations(
        self, allocations: Iterable[Allocation], *, caller: str
    ) -> RebalanceResult | None:
        """Replace the Target Portfolio; rebalances when base asset is on hand."""
        self._require(caller, CallerRole.ADMIN)
        async with self._lock:
            applied = self.registry.set_allocations(allocations)
            await self.events.emit(
                EventType.ALLOCATIONS_SET,
                allocations=[{"token": a.token, "weight_bps": a.weight_bps} for a in applied],
            )
            if self.holdings.balance_of(self.base_asset) > 0:
                return await self._rebalance()
            return None

    async def clear_allocations(self, *, caller: str) -> None:
        self._require(caller, CallerRole.ADMIN)
        async with self._lock:
            removed = self.registry.clear_allocations()
            await self.events.emit(
                EventType.ALLOCATIONS_CLEARED, removed=[a.token for a in removed]
            )

    async def allow_token(
        self, token: str, *, decimals: int | None = None, symbol: str = "", caller: str
    ) -> None:
        self._require(caller, CallerRole.ADMIN)
        async with self._lock:
            token = self.registry.allow_token(token, decimals, symbol)
            await self.events.emit(
                EventType.TOKEN_ALLOWED, token=token, decimals=self.holdings.decimals_of(token)
            )

    async def disallow_token(self, token: str, *, caller: str) -> None:
        self._require(caller, CallerRole.ADMIN)
        async with self._lock:
            if self.registry.disallow_token(token):
                await self.events.emit(EventType.TOKEN_DISALLOWED, token=normalize_token(token))

    async def set_price_source(
        self, token: str, feed: PriceFeed, decimals: int, *, caller: str
    ) -> None:
        self._require(caller, CallerRole.ADMIN)
        async with self._lock:
            self.registry.set_price_source(token, feed, decimals)
            await self.events.emit(
                EventType.PRICE_SOURCE_SET,
                token=normalize_token(token),
                feed=feed.feed_id,
                decimals=decimals,
            )

    # ─── Admin: emergencies ───────────────────────────────────────────────

    async def emergency_exit_all_positions(self, *, caller: str) -> EmergencyExitResult:
        """Sell every non-base holding to the base asset and clear the Target Portfolio."""
        self._require(caller, CallerRole.ADMIN)
        async with self._lock:
            result = EmergencyExitResult()
            for token in self.registry.tracked_tokens():
                balance = self.holdings.balance_of(token)
                if balance > 0:
                    result.legs.append(await self.swaps.swap(token, self.base_asset, balance))

            self.registry.clear_allocations()
            result.base_balance = self.holdings.balance_of(self.base_asset)
            logger.critical(
                "EMERGENCY EXIT: %d positions sold, %d failed, base balance %d",
                len(result.legs) - len(result.failed), len(result.failed), result.base_balance,
            )
            await self.events.emit(
                EventType.EMERGENCY_EXIT,
                sold=[s.from_token for s in result.legs if s.executed],
                failed=[s.from_token for s in result.failed],
                base_balance=result.base_balance,
            )
            return result

    async def emergency_withdraw(
        self, token: str, *, caller: str, destination: str | None = None
    ) -> int:
        """Sweep the full balance of ``token`` to the admin destination, bypassing accounting."""
        self._require(caller, CallerRole.ADMIN)
        async with self._lock:
            amount = self.holdings.balance_of(token)
            if amount > 0:
                self.holdings.debit(token, amount)
            destination = destination or self.withdraw_destination
            logger.critical(
                "EMERGENCY WITHDRAW: %d of %s sent to %s", amount, normalize_token(token), destination
            )
            await self.events.emit(
                EventType.EMERGENCY_WITHDRAW,
                token=normalize_token(token),
                amount=amount,
                destination=destination,
            )
            return amount

    # ─── Read-only accessors ──────────────────────────────────────────────

    async def total_assets(self) -> int:
        """Total Value from live prices; propagates ``OracleError``."""
        async with self._lock:
            return await self.valuation.total_value(strict=True)

    def get_allocations(self) -> list[Allocation]:
        return self.registry.allocations

    def is_token_allowed(self, token: str) -> bool:
        return self.registry.is_allowed(token)

    def get_token_balance(self, token: str) -> int:
        return self.holdings.balance_of(token)
