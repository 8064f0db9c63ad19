"""
Integration tests for the BasketPortfolio facade.

Tests: caller authorization, invest / free funds flow, rejected
       allocation sets, emergency exit and withdraw, event trail,
       serialized access.
"""

import asyncio

import pytest

from aibasket.exceptions import AuthorizationError, OracleError, ValidationError
from aibasket.models.enums import EventType, LegStatus
from aibasket.models.types import Allocation
from aibasket.oracle.static_feed import StaticPriceFeed

from conftest import ADMIN, BASE, ONE_DOLLAR, POOL, TOKEN_A, TOKEN_B


async def configure(basket, *weights):
    """Allow, price and target tokens through the admin API."""
    portfolio = basket.portfolio
    for token, _ in weights:
        await portfolio.allow_token(token, decimals=18, caller=ADMIN)
        await portfolio.set_price_source(
            token, StaticPriceFeed(f"feed-{token[-4:]}", ONE_DOLLAR), 8, caller=ADMIN
        )
        basket.exchange.set_price(token, ONE_DOLLAR, 18)
    await portfolio.set_allocations([Allocation(t, w) for t, w in weights], caller=ADMIN)


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_admin_ops_reject_pool_and_strangers(self, basket):
        portfolio = basket.portfolio
        for caller in (POOL, "mallory"):
            with pytest.raises(AuthorizationError):
                await portfolio.set_allocations([], caller=caller)
            with pytest.raises(AuthorizationError):
                await portfolio.allow_token(TOKEN_A, decimals=18, caller=caller)
            with pytest.raises(AuthorizationError):
                await portfolio.emergency_withdraw(BASE, caller=caller)
        assert len(basket.events) == 0

    @pytest.mark.asyncio
    async def test_pool_ops_reject_admin(self, basket):
        with pytest.raises(AuthorizationError):
            await basket.portfolio.invest(100, caller=ADMIN)
        with pytest.raises(AuthorizationError):
            await basket.portfolio.free_funds(100, caller=ADMIN)
        assert basket.holdings.balance_of(BASE) == 0

    @pytest.mark.asyncio
    async def test_rebalance_open_to_both_roles(self, basket):
        await basket.portfolio.rebalance(caller=POOL)
        await basket.portfolio.rebalance(caller=ADMIN)
        with pytest.raises(AuthorizationError):
            await basket.portfolio.rebalance(caller="mallory")


class TestFundsFlow:
    @pytest.mark.asyncio
    async def test_invest_without_target_holds_base(self, basket):
        result = await basket.portfolio.invest(1_000, caller=POOL)
        assert result is None
        assert basket.portfolio.get_token_balance(BASE) == 1_000
        assert await basket.portfolio.total_assets() == 1_000

    @pytest.mark.asyncio
    async def test_invest_rebalances_into_target(self, basket):
        await configure(basket, (TOKEN_A, 6_000), (TOKEN_B, 4_000))

        result = await basket.portfolio.invest(1_000, caller=POOL)

        assert result.swaps_issued == 2
        assert basket.portfolio.get_token_balance(TOKEN_A) == 600
        assert basket.portfolio.get_token_balance(TOKEN_B) == 400
        assert await basket.portfolio.total_assets() == 1_000

    @pytest.mark.asyncio
    async def test_two_phase_receive(self, basket):
        await configure(basket, (TOKEN_A, 10_000))
        await basket.portfolio.receive(500, caller=POOL)
        assert basket.portfolio.get_token_balance(TOKEN_A) == 0

        await basket.portfolio.on_received(500, caller=POOL)
        assert basket.portfolio.get_token_balance(TOKEN_A) == 500

    @pytest.mark.asyncio
    async def test_invest_rejects_non_positive(self, basket):
        with pytest.raises(ValidationError):
            await basket.portfolio.invest(0, caller=POOL)

    @pytest.mark.asyncio
    async def test_free_funds_from_base_only(self, basket):
        await basket.portfolio.invest(1_000, caller=POOL)
        released = await basket.portfolio.free_funds(300, caller=POOL)
        assert released == 300
        assert basket.portfolio.get_token_balance(BASE) == 700
        assert basket.events.of_type(EventType.LIQUIDATED) == []

    @pytest.mark.asyncio
    async def test_free_funds_liquidates_shortfall(self, basket):
        await configure(basket, (TOKEN_A, 6_000), (TOKEN_B, 4_000))
        await basket.portfolio.invest(1_000, caller=POOL)

        released = await basket.portfolio.free_funds(100, caller=POOL)

        assert released == 100
        assert basket.portfolio.get_token_balance(TOKEN_A) == 540
        assert basket.portfolio.get_token_balance(TOKEN_B) == 360
        assert basket.portfolio.get_token_balance(BASE) == 0
        (event,) = basket.events.of_type(EventType.FUNDS_RELEASED)
        assert event.details == {"requested": 100, "released": 100}

    @pytest.mark.asyncio
    async def test_free_funds_short_when_swaps_fail(self, basket):
        await configure(basket, (TOKEN_A, 10_000))
        await basket.portfolio.invest(1_000, caller=POOL)
        basket.exchange.fail_swaps_for(TOKEN_A)

        released = await basket.portfolio.free_funds(100, caller=POOL)

        assert released == 0
        assert basket.portfolio.get_token_balance(TOKEN_A) == 1_000


class TestAllocations:
    @pytest.mark.asyncio
    async def test_overweight_set_is_rejected_without_events(self, basket):
        await configure(basket, (TOKEN_A, 5_000), (TOKEN_B, 5_000))
        before = basket.portfolio.get_allocations()
        event_count = len(basket.events)

        with pytest.raises(ValidationError):
            await basket.portfolio.set_allocations(
                [Allocation(TOKEN_A, 5_000), Allocation(TOKEN_B, 6_000)], caller=ADMIN
            )

        assert basket.portfolio.get_allocations() == before
        assert len(basket.events) == event_count

    @pytest.mark.asyncio
    async def test_set_allocations_rebalances_held_base(self, basket):
        await basket.portfolio.invest(1_000, caller=POOL)
        await configure(basket, (TOKEN_A, 3_000))
        assert basket.portfolio.get_token_balance(TOKEN_A) == 300

    @pytest.mark.asyncio
    async def test_allow_and_disallow(self, basket):
        await basket.portfolio.allow_token(TOKEN_A, decimals=18, caller=ADMIN)
        assert basket.portfolio.is_token_allowed(TOKEN_A)
        await basket.portfolio.disallow_token(TOKEN_A, caller=ADMIN)
        assert not basket.portfolio.is_token_allowed(TOKEN_A)
        assert [e.event_type for e in basket.events.events] == [
            EventType.TOKEN_ALLOWED,
            EventType.TOKEN_DISALLOWED,
        ]

    @pytest.mark.asyncio
    async def test_clear_allocations(self, basket):
        await configure(basket, (TOKEN_A, 5_000))
        await basket.portfolio.clear_allocations(caller=ADMIN)
        assert basket.portfolio.get_allocations() == []
        (event,) = basket.events.of_type(EventType.ALLOCATIONS_CLEARED)
        assert event.details["removed"] == [TOKEN_A]


class TestEmergency:
    @pytest.mark.asyncio
    async def test_exit_sells_everything_and_clears_target(self, basket):
        await configure(basket, (TOKEN_A, 6_000), (TOKEN_B, 4_000))
        await basket.portfolio.invest(1_000, caller=POOL)

        result = await basket.portfolio.emergency_exit_all_positions(caller=ADMIN)

        assert [leg.status for leg in result.legs] == [LegStatus.EXECUTED] * 2
        assert result.base_balance == 1_000
        assert basket.portfolio.get_allocations() == []
        assert basket.portfolio.get_token_balance(TOKEN_A) == 0
        assert len(basket.events.of_type(EventType.EMERGENCY_EXIT)) == 1

    @pytest.mark.asyncio
    async def test_exit_reports_failed_leg(self, basket):
        await configure(basket, (TOKEN_A, 6_000), (TOKEN_B, 4_000))
        await basket.portfolio.invest(1_000, caller=POOL)
        basket.exchange.fail_swaps_for(TOKEN_B)

        result = await basket.portfolio.emergency_exit_all_positions(caller=ADMIN)

        assert [s.from_token for s in result.failed] == [TOKEN_B]
        assert basket.portfolio.get_token_balance(TOKEN_B) == 400

    @pytest.mark.asyncio
    async def test_exit_sells_disallowed_holding(self, basket):
        await configure(basket, (TOKEN_A, 10_000))
        await basket.portfolio.invest(1_000, caller=POOL)
        await basket.portfolio.set_allocations([], caller=ADMIN)
        await basket.portfolio.disallow_token(TOKEN_A, caller=ADMIN)

        result = await basket.portfolio.emergency_exit_all_positions(caller=ADMIN)

        assert [s.from_token for s in result.legs] == [TOKEN_A]
        assert result.base_balance == 1_000
        assert basket.portfolio.get_token_balance(TOKEN_A) == 0

    @pytest.mark.asyncio
    async def test_withdraw_sweeps_full_balance(self, basket):
        await basket.portfolio.invest(750, caller=POOL)

        amount = await basket.portfolio.emergency_withdraw(BASE, caller=ADMIN)

        assert amount == 750
        assert basket.portfolio.get_token_balance(BASE) == 0
        (event,) = basket.events.of_type(EventType.EMERGENCY_WITHDRAW)
        assert event.details["destination"] == "treasury"


class TestReads:
    @pytest.mark.asyncio
    async def test_total_assets_propagates_oracle_error(self, basket):
        await configure(basket, (TOKEN_A, 10_000))
        await basket.portfolio.invest(1_000, caller=POOL)
        feed = basket.portfolio.registry.binding_for(TOKEN_A).feed
        feed.set_price(0)

        with pytest.raises(OracleError):
            await basket.portfolio.total_assets()

    @pytest.mark.asyncio
    async def test_total_assets_counts_disallowed_holding(self, basket):
        await configure(basket, (TOKEN_A, 10_000))
        await basket.portfolio.invest(1_000, caller=POOL)
        await basket.portfolio.set_allocations([], caller=ADMIN)
        await basket.portfolio.disallow_token(TOKEN_A, caller=ADMIN)

        assert not basket.portfolio.is_token_allowed(TOKEN_A)
        assert await basket.portfolio.total_assets() == 1_000

    @pytest.mark.asyncio
    async def test_injected_event_log_receives_events(self, basket):
        delivered = []

        async def sink(event):
            delivered.append(event)

        basket.events.add_sink(sink)
        await basket.portfolio.invest(100, caller=POOL)

        assert basket.portfolio.events is basket.events
        assert [e.event_type for e in delivered] == [EventType.FUNDS_RECEIVED]

    @pytest.mark.asyncio
    async def test_event_sequence_is_monotonic(self, basket):
        await configure(basket, (TOKEN_A, 10_000))
        await basket.portfolio.invest(1_000, caller=POOL)
        sequences = [e.sequence for e in basket.events.events]
        assert sequences == list(range(1, len(sequences) + 1))
        assert basket.events.events[-1].event_type == EventType.REBALANCED

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_serialized(self, basket):
        await configure(basket, (TOKEN_A, 5_000), (TOKEN_B, 5_000))

        await asyncio.gather(*(basket.portfolio.invest(100, caller=POOL) for _ in range(10)))

        assert await basket.portfolio.total_assets() == 1_000
        assert basket.portfolio.get_token_balance(TOKEN_A) == 500
        assert basket.portfolio.get_token_balance(TOKEN_B) == 500
