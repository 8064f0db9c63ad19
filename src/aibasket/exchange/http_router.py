"""
HTTP router adapter — concrete ExchangeAdapter over a DEX router API.

Handles:
- Multi-hop output quotes (``/quote``)
- Exact-input swaps with a minimum output (``/swap``)

Amounts are exchanged as decimal strings so 256-bit integers survive JSON.
Transport errors, non-2xx responses and malformed bodies all surface as
``SwapFailure``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from aibasket.config import settings
from aibasket.exceptions import SwapFailure
from aibasket.exchange.base import ExchangeAdapter

logger = logging.getLogger(__name__)


class HttpRouterExchange(ExchangeAdapter):
    """Router integration over HTTP.

    Usage::

        exchange = HttpRouterExchange()
        amounts = await exchange.get_amounts_out(10**18, [WETH, USDC])
        out = await exchange.swap_exact_tokens_for_tokens(10**18, amounts[-1] * 95 // 100, [WETH, USDC])
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        spender: str | None = None,
        recipient: str = "",
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.exchange_base_url).rstrip("/")
        self._spender = spender or settings.exchange_spender
        self._recipient = recipient
        self._http = http or httpx.AsyncClient(timeout=settings.exchange_timeout_seconds)

    @property
    def spender(self) -> str:
        return self._spender

    async def close(self) -> None:
        await self._http.aclose()

    # ── Internal helpers ───────────────────────────────────────────────────

    async def _post(self, path: str, payload: dict[str, Any]) -> dict:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._http.post(url, json=payload)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:200]
            raise SwapFailure(f"Router {path} failed ({exc.response.status_code}): {detail}") from exc
        except httpx.HTTPError as exc:
            raise SwapFailure(f"Router unreachable at {url}: {exc}") from exc
        except ValueError as exc:
            raise SwapFailure(f"Router {path} returned invalid JSON") from exc

    # ── Quotes ─────────────────────────────────────────────────────────────

    async def get_amounts_out(self, amount_in: int, path: list[str]) -> list[int]:
        data = await self._post("/quote", {"amountIn": str(amount_in), "path": path})
        try:
            amounts = [int(a) for a in data["amounts"]]
        except (KeyError, TypeError, ValueError) as exc:
            raise SwapFailure("Router quote response missing 'amounts'") from exc
        if len(amounts) != len(path):
            raise SwapFailure(
                f"Router quoted {len(amounts)} amounts for a {len(path)}-token path"
            )
        return amounts

    # ── Swaps ──────────────────────────────────────────────────────────────

    async def swap_exact_tokens_for_tokens(
        self,
        amount_in: int,
        amount_out_min: int,
        path: list[str],
    ) -> int:
        data = await self._post(
            "/swap",
            {
                "amountIn": str(amount_in),
                "amountOutMin": str(amount_out_min),
                "path": path,
                "recipient": self._recipient,
            },
        )
        try:
            amount_out = int(data["amountOut"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SwapFailure("Router swap response missing 'amountOut'") from exc

        if amount_out < amount_out_min:
            raise SwapFailure(f"Router filled {amount_out} below minimum {amount_out_min}")
        logger.info(
            "Router swap %s: in=%d out=%d tx=%s",
            " -> ".join(path), amount_in, amount_out, data.get("txHash", ""),
        )
        return amount_out
