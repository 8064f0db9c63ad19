"""
Portfolio Service — HTTP surface of the basket portfolio engine.

Handles:
- Pool operations: invest, free funds, liquidate
- Administrator operations: target portfolio, allow-list, price sources,
  rebalance, emergency exit and withdraw
- Read-only views: total assets, allocations, balances, event trail

Callers identify themselves with the ``X-Caller`` header; the engine
decides whether that principal is the pool or the administrator.
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import asynccontextmanager
from typing import Annotated

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from aibasket.advice import (
    AdviceError,
    InvestmentAdvice,
    normalize_percentages,
    to_allocations,
    validate_advice,
)
from aibasket.config import settings
from aibasket.exceptions import AuthorizationError, OracleError, ValidationError
from aibasket.exchange.http_router import HttpRouterExchange
from aibasket.models.enums import EventType
from aibasket.models.types import (
    Allocation,
    LiquidationResult,
    PortfolioEvent,
    RebalanceResult,
)
from aibasket.oracle.adapter import OracleAdapter
from aibasket.oracle.http_feed import HttpPriceFeed
from aibasket.portfolio.manager import BasketPortfolio

logger = logging.getLogger(__name__)

_portfolio: BasketPortfolio | None = None
_oracle_http: httpx.AsyncClient | None = None


def get_oracle_http() -> httpx.AsyncClient:
    """One HTTP client shared by every price feed bound through the API."""
    global _oracle_http
    if _oracle_http is None or _oracle_http.is_closed:
        _oracle_http = httpx.AsyncClient(timeout=settings.oracle_timeout_seconds)
    return _oracle_http


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _oracle_http
    yield
    if _oracle_http is not None:
        await _oracle_http.aclose()
        _oracle_http = None


app = FastAPI(title="AI Basket Portfolio Service", version="0.1.0", lifespan=lifespan)


# Dependency
def get_portfolio() -> BasketPortfolio:
    global _portfolio
    if _portfolio is None:
        _portfolio = BasketPortfolio(exchange=HttpRouterExchange(), oracle=OracleAdapter())
        logger.info("Portfolio engine initialised (base asset %s)", _portfolio.base_asset)
    return _portfolio


Portfolio = Annotated[BasketPortfolio, Depends(get_portfolio)]
Caller = Annotated[str, Header(alias="X-Caller")]


# ── Error mapping ─────────────────────────────────────────────────────────────


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AdviceError)
async def _advice_error(request: Request, exc: AdviceError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AuthorizationError)
async def _authorization_error(request: Request, exc: AuthorizationError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(OracleError)
async def _oracle_error(request: Request, exc: OracleError) -> JSONResponse:
    logger.warning("Oracle failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# ── Request models ────────────────────────────────────────────────────────────


class AmountRequest(BaseModel):
    amount: int = Field(gt=0)


class AllocationIn(BaseModel):
    token: str
    weight_bps: int


class AllocationsRequest(BaseModel):
    allocations: list[AllocationIn]


class AllowTokenRequest(BaseModel):
    token: str
    decimals: int | None = None
    symbol: str = ""


class PriceSourceRequest(BaseModel):
    token: str
    feed_id: str
    decimals: int
    base_url: str | None = None


class TokenRequest(BaseModel):
    token: str


class WithdrawRequest(TokenRequest):
    destination: str | None = None


# ── Serialisation helpers ─────────────────────────────────────────────────────


def _rebalance_out(result: RebalanceResult | None) -> dict | None:
    if result is None:
        return None
    return {
        "total_value": result.total_value,
        "threshold": result.threshold,
        "swaps_issued": result.swaps_issued,
        "complete": result.is_complete,
        "legs": [
            {**dataclasses.asdict(leg), "status": leg.status.value} for leg in result.legs
        ],
    }


def _liquidation_out(result: LiquidationResult) -> dict:
    return {
        "requested": result.requested,
        "freed": result.freed,
        "shortfall": result.shortfall,
        "total_value": result.total_value,
        "swaps_issued": result.swaps_issued,
        "legs": [
            {**dataclasses.asdict(leg), "status": leg.status.value} for leg in result.legs
        ],
    }


def _event_out(event: PortfolioEvent) -> dict:
    return {
        "sequence": event.sequence,
        "type": event.event_type.value,
        "timestamp": event.timestamp,
        "details": event.details,
    }


# ── Endpoints ─────────────────────────────────────────────────────────────────


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "portfolio-service"}


@app.get("/total-assets")
async def total_assets(portfolio: Portfolio):
    """Total Value in base-asset units, from live prices."""
    return {"base_asset": portfolio.base_asset, "total_assets": await portfolio.total_assets()}


@app.get("/allocations")
async def get_allocations(portfolio: Portfolio):
    return {
        "allocations": [
            {"token": a.token, "weight_bps": a.weight_bps} for a in portfolio.get_allocations()
        ]
    }


@app.get("/tokens/{token}")
async def get_token(token: str, portfolio: Portfolio):
    return {
        "token": token.lower(),
        "allowed": portfolio.is_token_allowed(token),
        "balance": portfolio.get_token_balance(token),
    }


@app.get("/events")
async def list_events(portfolio: Portfolio, event_type: EventType | None = None):
    events = portfolio.events.of_type(event_type) if event_type else portfolio.events.events
    return {"events": [_event_out(e) for e in events]}


# Pool


@app.post("/invest")
async def invest(body: AmountRequest, caller: Caller, portfolio: Portfolio):
    result = await portfolio.invest(body.amount, caller=caller)
    return {"received": body.amount, "rebalance": _rebalance_out(result)}


@app.post("/free-funds")
async def free_funds(body: AmountRequest, caller: Caller, portfolio: Portfolio):
    released = await portfolio.free_funds(body.amount, caller=caller)
    return {"requested": body.amount, "released": released}


@app.post("/liquidate")
async def liquidate(body: AmountRequest, caller: Caller, portfolio: Portfolio):
    result = await portfolio.liquidate(body.amount, caller=caller)
    return _liquidation_out(result)


@app.post("/rebalance")
async def rebalance(caller: Caller, portfolio: Portfolio):
    result = await portfolio.rebalance(caller=caller)
    return _rebalance_out(result)


# Administrator


@app.put("/admin/allocations")
async def set_allocations(body: AllocationsRequest, caller: Caller, portfolio: Portfolio):
    allocations = [Allocation(token=a.token, weight_bps=a.weight_bps) for a in body.allocations]
    result = await portfolio.set_allocations(allocations, caller=caller)
    return {"allocations": len(allocations), "rebalance": _rebalance_out(result)}


@app.put("/admin/allocations/advice")
async def set_allocations_from_advice(
    advice: InvestmentAdvice,
    caller: Caller,
    portfolio: Portfolio,
    normalize: bool = False,
):
    """Apply an advice-shaped payload (percentages) as the Target Portfolio."""
    if normalize:
        advice = normalize_percentages(advice)
    issues = validate_advice(advice)
    if issues:
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid advice", "issues": [dataclasses.asdict(i) for i in issues]},
        )
    allocations = to_allocations(advice)
    result = await portfolio.set_allocations(allocations, caller=caller)
    return {
        "allocations": [{"token": a.token, "weight_bps": a.weight_bps} for a in allocations],
        "rebalance": _rebalance_out(result),
    }


@app.delete("/admin/allocations")
async def clear_allocations(caller: Caller, portfolio: Portfolio):
    await portfolio.clear_allocations(caller=caller)
    return {"cleared": True}


@app.post("/admin/tokens/allow")
async def allow_token(body: AllowTokenRequest, caller: Caller, portfolio: Portfolio):
    await portfolio.allow_token(
        body.token, decimals=body.decimals, symbol=body.symbol, caller=caller
    )
    return {"token": body.token.lower(), "allowed": True}


@app.post("/admin/tokens/disallow")
async def disallow_token(body: TokenRequest, caller: Caller, portfolio: Portfolio):
    await portfolio.disallow_token(body.token, caller=caller)
    return {"token": body.token.lower(), "allowed": False}


@app.post("/admin/price-sources")
async def set_price_source(body: PriceSourceRequest, caller: Caller, portfolio: Portfolio):
    feed = HttpPriceFeed(body.feed_id, base_url=body.base_url, http=get_oracle_http())
    await portfolio.set_price_source(body.token, feed, body.decimals, caller=caller)
    return {"token": body.token.lower(), "feed_id": body.feed_id, "decimals": body.decimals}


@app.post("/admin/emergency-exit")
async def emergency_exit(caller: Caller, portfolio: Portfolio):
    result = await portfolio.emergency_exit_all_positions(caller=caller)
    return {
        "base_balance": result.base_balance,
        "legs": [{**dataclasses.asdict(s), "status": s.status.value} for s in result.legs],
    }


@app.post("/admin/emergency-withdraw")
async def emergency_withdraw(body: WithdrawRequest, caller: Caller, portfolio: Portfolio):
    amount = await portfolio.emergency_withdraw(
        body.token, caller=caller, destination=body.destination
    )
    return {"token": body.token.lower(), "amount": amount}


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("aibasket.services.portfolio.main:app", host="0.0.0.0", port=8010, reload=True)
