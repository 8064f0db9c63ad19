"""
Shared fixtures: a paper market where every token trades 1:1 with the base
asset, so base-asset values equal raw token amounts unless a test changes a
price.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from aibasket.audit.event_log import EventLog
from aibasket.exchange.paper import PaperExchange
from aibasket.models.types import Allocation
from aibasket.oracle.adapter import OracleAdapter
from aibasket.oracle.static_feed import StaticPriceFeed
from aibasket.portfolio.holdings import Holdings
from aibasket.portfolio.manager import BasketPortfolio

BASE = "0x00000000000000000000000000000000000000a1"
BRIDGE = "0x0000000000000000000000000000000000000002"
TOKEN_A = "0x" + "a" * 40
TOKEN_B = "0x" + "b" * 40
TOKEN_C = "0x" + "c" * 40

POOL = "vault"
ADMIN = "admin"

ONE_DOLLAR = 10**8  # feed precision: 8 decimals


@dataclass
class Basket:
    portfolio: BasketPortfolio
    exchange: PaperExchange
    holdings: Holdings
    events: EventLog
    feeds: dict[str, StaticPriceFeed] = field(default_factory=dict)

    def bind(self, token: str, price: int = ONE_DOLLAR, *, token_decimals: int = 18,
             feed_decimals: int = 8) -> StaticPriceFeed:
        """Allow ``token`` and bind a static feed, bypassing the facade."""
        registry = self.portfolio.registry
        if token != BASE:
            registry.allow_token(token, token_decimals)
        feed = StaticPriceFeed(f"feed-{token[-4:]}", price, decimals=feed_decimals)
        registry.set_price_source(token, feed, feed_decimals)
        self.feeds[token] = feed
        self.exchange.set_price(token, price, token_decimals)
        return feed

    def target(self, *weights: tuple[str, int]) -> None:
        self.portfolio.registry.set_allocations(Allocation(t, w) for t, w in weights)


@pytest.fixture
def basket() -> Basket:
    holdings = Holdings()
    events = EventLog()
    exchange = PaperExchange(holdings)
    portfolio = BasketPortfolio(
        exchange,
        base_asset=BASE,
        base_decimals=18,
        pool=POOL,
        admin=ADMIN,
        withdraw_destination="treasury",
        oracle=OracleAdapter(max_age_seconds=3600, timeout_seconds=1),
        events=events,
        holdings=holdings,
        bridge_token=BRIDGE,
        max_allocations=10,
        threshold_bps=100,
        max_slippage_bps=500,
    )
    b = Basket(portfolio, exchange, holdings, events)
    b.bind(BASE)
    exchange.set_price(BRIDGE, ONE_DOLLAR, 18)
    return b
