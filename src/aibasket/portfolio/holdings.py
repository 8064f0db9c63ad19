"""
Token ledger for the portfolio: on-hand balances, token metadata, and the
spending allowances granted to the exchange.

Balances are integers in each token's native unit (e.g. 6 decimals for a
stablecoin, 18 for most others).
"""

from __future__ import annotations

import logging
import re

from aibasket.exceptions import ValidationError
from aibasket.models.types import TokenInfo

logger = logging.getLogger(__name__)

_ZERO_ADDRESS = re.compile(r"^0x0{40}$")


def normalize_token(token: str) -> str:
    """Canonical token id: stripped and lower-cased."""
    return (token or "").strip().lower()


def is_zero_token(token: str) -> bool:
    """True for the empty token or the all-zero address."""
    token = normalize_token(token)
    return not token or bool(_ZERO_ADDRESS.match(token))


class Holdings:
    """In-memory ledger of what the portfolio holds.

    Usage::

        holdings = Holdings()
        holdings.register_token("0xusdc...", decimals=6, symbol="USDC")
        holdings.credit("0xusdc...", 1_000_000)
        holdings.balance_of("0xusdc...")  # 1_000_000
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._tokens: dict[str, TokenInfo] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    # ─── Token metadata ───────────────────────────────────────────────────

    def register_token(self, token: str, decimals: int, symbol: str = "") -> TokenInfo:
        if decimals < 0 or decimals > 77:
            raise ValidationError(f"Invalid decimals {decimals} for token {token}")
        info = TokenInfo(token=normalize_token(token), decimals=decimals, symbol=symbol)
        self._tokens[info.token] = info
        return info

    def is_registered(self, token: str) -> bool:
        return normalize_token(token) in self._tokens

    def decimals_of(self, token: str) -> int:
        info = self._tokens.get(normalize_token(token))
        if info is None:
            raise ValidationError(f"Unknown token {token}: decimals not registered")
        return info.decimals

    # ─── Balances ─────────────────────────────────────────────────────────

    def balance_of(self, token: str) -> int:
        return self._balances.get(normalize_token(token), 0)

    def credit(self, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Cannot credit negative amount {amount}")
        key = normalize_token(token)
        self._balances[key] = self._balances.get(key, 0) + amount

    def debit(self, token: str, amount: int) -> None:
        key = normalize_token(token)
        balance = self._balances.get(key, 0)
        if amount < 0 or amount > balance:
            raise ValueError(
                f"Cannot debit {amount} of {token}: balance is {balance}"
            )
        self._balances[key] = balance - amount

    def non_zero(self) -> dict[str, int]:
        """Snapshot of every token with a positive balance."""
        return {t: b for t, b in self._balances.items() if b > 0}

    # ─── Allowances ───────────────────────────────────────────────────────

    def approve(self, token: str, spender: str, amount: int) -> None:
        self._allowances[(normalize_token(token), spender)] = amount

    def allowance(self, token: str, spender: str) -> int:
        return self._allowances.get((normalize_token(token), spender), 0)
