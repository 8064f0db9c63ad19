"""
Abstract base class for exchange routers.

All exchange integrations (HTTP router, paper router) implement this
interface so the swap executor can quote and swap without caring which
venue is behind it. Implementations raise ``SwapFailure`` for anything
that prevents a quote or a trade.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ExchangeAdapter(ABC):
    """Abstract exchange router interface (exact-input swaps along a path)."""

    @property
    @abstractmethod
    def spender(self) -> str:
        """Address the portfolio must approve before a swap."""
        ...

    @abstractmethod
    async def get_amounts_out(self, amount_in: int, path: list[str]) -> list[int]:
        """Quote the output of each hop for ``amount_in`` along ``path``.

        Returns a list of ``len(path)`` amounts; the last is the final output.
        """
        ...

    @abstractmethod
    async def swap_exact_tokens_for_tokens(
        self,
        amount_in: int,
        amount_out_min: int,
        path: list[str],
    ) -> int:
        """Swap exactly ``amount_in`` of ``path[0]``; return the amount of ``path[-1]`` received.

        Must fail (``SwapFailure``) rather than deliver less than ``amount_out_min``.
        """
        ...
