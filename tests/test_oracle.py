"""
Unit tests for price feeds and the oracle adapter.

Tests: static feed, HTTP feed parsing and error translation, adapter
       checks (missing binding, non-positive, stale, precision, timeout,
       unexpected feed errors).
"""

import asyncio
import time
from unittest.mock import AsyncMock

import httpx
import pytest

from aibasket.exceptions import OracleError
from aibasket.models.types import PriceData, PriceSourceBinding
from aibasket.oracle.adapter import OracleAdapter
from aibasket.oracle.base import PriceFeed
from aibasket.oracle.http_feed import HttpPriceFeed
from aibasket.oracle.static_feed import StaticPriceFeed


def make_response(status_code, json_data=None, content=None):
    if content is not None:
        resp = httpx.Response(status_code, content=content)
    else:
        resp = httpx.Response(status_code, json=json_data)
    resp.request = httpx.Request("GET", "https://oracle.mock")
    return resp


class SlowFeed(PriceFeed):
    @property
    def feed_id(self) -> str:
        return "slow"

    async def latest_price(self) -> PriceData:
        await asyncio.sleep(10)
        return PriceData(1, 8, time.time())


class BrokenFeed(PriceFeed):
    @property
    def feed_id(self) -> str:
        return "broken"

    async def latest_price(self) -> PriceData:
        raise RuntimeError("socket closed")


@pytest.fixture
def oracle():
    return OracleAdapter(max_age_seconds=60, timeout_seconds=0.05)


# ── Static feed ──────────────────────────────────────────────────────────


class TestStaticFeed:
    @pytest.mark.asyncio
    async def test_reports_configured_price(self):
        feed = StaticPriceFeed("eth-usd", 2_000 * 10**8)
        data = await feed.latest_price()
        assert (data.price, data.decimals) == (2_000 * 10**8, 8)
        assert data.age_seconds < 5
        assert feed.reads == 1

    @pytest.mark.asyncio
    async def test_set_price_refreshes_timestamp(self):
        feed = StaticPriceFeed("eth-usd", 1, updated_at=0)
        feed.set_price(2)
        data = await feed.latest_price()
        assert data.price == 2
        assert data.updated_at > 0


# ── HTTP feed ────────────────────────────────────────────────────────────


class TestHttpFeed:
    @pytest.mark.asyncio
    async def test_parses_round(self):
        feed = HttpPriceFeed("eth-usd", base_url="https://oracle.mock/")
        feed._http.get = AsyncMock(return_value=make_response(200, {
            "answer": "200000000000",
            "decimals": 8,
            "updatedAt": 1_700_000_000,
        }))

        data = await feed.latest_price()

        assert data == PriceData(price=200_000_000_000, decimals=8, updated_at=1_700_000_000.0)
        feed._http.get.assert_called_once_with("https://oracle.mock/feeds/eth-usd/latest")

    @pytest.mark.asyncio
    async def test_http_error_becomes_oracle_error(self):
        feed = HttpPriceFeed("eth-usd", base_url="https://oracle.mock")
        feed._http.get = AsyncMock(return_value=make_response(503, {"error": "down"}))
        with pytest.raises(OracleError, match="unreachable"):
            await feed.latest_price()

    @pytest.mark.asyncio
    async def test_connection_error_becomes_oracle_error(self):
        feed = HttpPriceFeed("eth-usd", base_url="https://oracle.mock")
        feed._http.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(OracleError, match="unreachable"):
            await feed.latest_price()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        feed = HttpPriceFeed("eth-usd", base_url="https://oracle.mock")
        feed._http.get = AsyncMock(return_value=make_response(200, content=b"<html>"))
        with pytest.raises(OracleError, match="invalid JSON"):
            await feed.latest_price()

    @pytest.mark.asyncio
    async def test_malformed_round(self):
        feed = HttpPriceFeed("eth-usd", base_url="https://oracle.mock")
        feed._http.get = AsyncMock(return_value=make_response(200, {"answer": "12"}))
        with pytest.raises(OracleError, match="malformed"):
            await feed.latest_price()

    @pytest.mark.asyncio
    async def test_close_leaves_shared_client_open(self):
        async with httpx.AsyncClient() as shared:
            feed = HttpPriceFeed("eth-usd", base_url="https://oracle.mock", http=shared)
            await feed.close()
            assert not shared.is_closed

    @pytest.mark.asyncio
    async def test_close_releases_own_client(self):
        feed = HttpPriceFeed("eth-usd", base_url="https://oracle.mock")
        await feed.close()
        assert feed._http.is_closed


# ── Adapter ──────────────────────────────────────────────────────────────


class TestOracleAdapter:
    @pytest.mark.asyncio
    async def test_returns_valid_price(self, oracle):
        binding = PriceSourceBinding(StaticPriceFeed("x", 5 * 10**8), 8)
        data = await oracle.get_price("0xtoken", binding)
        assert data.price == 5 * 10**8

    @pytest.mark.asyncio
    async def test_missing_binding(self, oracle):
        with pytest.raises(OracleError, match="No price source"):
            await oracle.get_price("0xtoken", None)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", [0, -1])
    async def test_non_positive_price(self, oracle, price):
        binding = PriceSourceBinding(StaticPriceFeed("x", price), 8)
        with pytest.raises(OracleError, match="Non-positive"):
            await oracle.get_price("0xtoken", binding)

    @pytest.mark.asyncio
    async def test_stale_price(self, oracle):
        feed = StaticPriceFeed("x", 10**8, updated_at=time.time() - 3_600)
        with pytest.raises(OracleError, match="Stale"):
            await oracle.get_price("0xtoken", PriceSourceBinding(feed, 8))

    @pytest.mark.asyncio
    async def test_staleness_check_disabled_with_zero_max_age(self):
        oracle = OracleAdapter(max_age_seconds=0, timeout_seconds=1)
        feed = StaticPriceFeed("x", 10**8, updated_at=0)
        data = await oracle.get_price("0xtoken", PriceSourceBinding(feed, 8))
        assert data.price == 10**8

    @pytest.mark.asyncio
    async def test_reported_decimals_must_match_binding(self, oracle):
        feed = StaticPriceFeed("x", 10**18, decimals=18)
        with pytest.raises(OracleError, match="binding expects 8"):
            await oracle.get_price("0xtoken", PriceSourceBinding(feed, 8))

    @pytest.mark.asyncio
    async def test_slow_feed_times_out(self, oracle):
        with pytest.raises(OracleError, match="timed out"):
            await oracle.get_price("0xtoken", PriceSourceBinding(SlowFeed(), 8))

    @pytest.mark.asyncio
    async def test_unexpected_feed_error_is_wrapped(self, oracle):
        with pytest.raises(OracleError, match="socket closed"):
            await oracle.get_price("0xtoken", PriceSourceBinding(BrokenFeed(), 8))
