"""
Allocation Registry — target portfolio, token allow-list and price bindings.

Writes are all-or-nothing: a candidate Target Portfolio is validated in
full before the old one is discarded, so a rejected call leaves the
registry exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from aibasket.config import settings
from aibasket.exceptions import ValidationError
from aibasket.models.types import BPS_DENOMINATOR, Allocation, PriceSourceBinding
from aibasket.oracle.base import PriceFeed
from aibasket.portfolio.holdings import Holdings, is_zero_token, normalize_token

logger = logging.getLogger(__name__)


class AllocationRegistry:
    """Holds the Target Portfolio and the rules every write must satisfy."""

    def __init__(
        self,
        base_asset: str,
        holdings: Holdings,
        max_allocations: int | None = None,
    ) -> None:
        if is_zero_token(base_asset):
            raise ValidationError("Base asset cannot be the zero token")
        self.base_asset = normalize_token(base_asset)
        self.max_allocations = (
            settings.max_allocations if max_allocations is None else max_allocations
        )
        self._holdings = holdings
        self._allocations: list[Allocation] = []
        # dicts double as insertion-ordered sets
        self._allowed: dict[str, None] = {self.base_asset: None}
        self._bindings: dict[str, PriceSourceBinding] = {}

    # ─── Target Portfolio ─────────────────────────────────────────────────

    @property
    def allocations(self) -> list[Allocation]:
        return list(self._allocations)

    def validate(self, allocations: Iterable[Allocation]) -> list[Allocation]:
        """Return a normalized copy of ``allocations`` or raise ``ValidationError``."""
        candidate = [
            Allocation(token=normalize_token(a.token), weight_bps=a.weight_bps)
            for a in allocations
        ]

        if len(candidate) > self.max_allocations:
            raise ValidationError(
                f"Too many allocations: {len(candidate)} > {self.max_allocations}"
            )

        seen: set[str] = set()
        total_bps = 0
        for index, alloc in enumerate(candidate):
            if is_zero_token(alloc.token):
                raise ValidationError(f"Allocation {index}: token is the zero token")
            if alloc.token in seen:
                raise ValidationError(f"Allocation {index}: duplicate token {alloc.token}")
            if alloc.token not in self._allowed:
                raise ValidationError(f"Allocation {index}: token {alloc.token} is not allowed")
            weight = alloc.weight_bps
            if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
                raise ValidationError(
                    f"Allocation {index}: weight must be a positive integer, got {alloc.weight_bps}"
                )
            if alloc.weight_bps > BPS_DENOMINATOR:
                raise ValidationError(
                    f"Allocation {index}: weight {alloc.weight_bps} exceeds {BPS_DENOMINATOR} bps"
                )

            binding = self._bindings.get(alloc.token)
            if binding is None:
                raise ValidationError(f"Allocation {index}: token {alloc.token} has no price source")
            if alloc.token != self.base_asset:
                base_binding = self._bindings.get(self.base_asset)
                if base_binding is None:
                    raise ValidationError("Base asset has no price source")
                if binding.decimals != base_binding.decimals:
                    raise ValidationError(
                        f"Allocation {index}: price source decimals {binding.decimals} "
                        f"differ from base asset's {base_binding.decimals}"
                    )

            seen.add(alloc.token)
            total_bps += alloc.weight_bps

        if total_bps > BPS_DENOMINATOR:
            raise ValidationError(
                f"Total weight {total_bps} bps exceeds {BPS_DENOMINATOR} bps"
            )
        return candidate

    def set_allocations(self, allocations: Iterable[Allocation]) -> list[Allocation]:
        """Atomically replace the Target Portfolio (old entries are discarded)."""
        validated = self.validate(allocations)
        self._allocations = validated
        logger.info(
            "Target portfolio replaced: %s",
            ", ".join(f"{a.token}={a.weight_bps}bps" for a in validated) or "<empty>",
        )
        return list(validated)

    def clear_allocations(self) -> list[Allocation]:
        """Drop the Target Portfolio; returns what was removed."""
        removed, self._allocations = self._allocations, []
        return removed

    # ─── Allow-list ───────────────────────────────────────────────────────

    def allow_token(self, token: str, decimals: int | None = None, symbol: str = "") -> str:
        token = normalize_token(token)
        if is_zero_token(token):
            raise ValidationError("Cannot allow the zero token")
        if decimals is not None:
            self._holdings.register_token(token, decimals, symbol)
        elif not self._holdings.is_registered(token):
            raise ValidationError(f"Token {token} has no registered decimals")
        self._allowed[token] = None
        return token

    def disallow_token(self, token: str) -> bool:
        """Remove ``token`` from the allow-list; returns False if it wasn't allowed."""
        token = normalize_token(token)
        if token == self.base_asset:
            raise ValidationError("The base asset cannot be disallowed")
        return self._allowed.pop(token, False) is None

    def is_allowed(self, token: str) -> bool:
        return normalize_token(token) in self._allowed

    @property
    def allowed_tokens(self) -> list[str]:
        return list(self._allowed)

    # ─── Price sources ────────────────────────────────────────────────────

    def set_price_source(self, token: str, feed: PriceFeed, decimals: int) -> PriceSourceBinding:
        token = normalize_token(token)
        if is_zero_token(token):
            raise ValidationError("Cannot bind a price source to the zero token")
        if decimals < 0:
            raise ValidationError(f"Invalid price decimals {decimals}")
        self._check_binding_precision(token, decimals)
        binding = PriceSourceBinding(feed=feed, decimals=decimals)
        self._bindings[token] = binding
        return binding

    def binding_for(self, token: str) -> PriceSourceBinding | None:
        return self._bindings.get(normalize_token(token))

    def _check_binding_precision(self, token: str, decimals: int) -> None:
        """Targeted tokens must keep the base binding's decimals."""
        targeted = {a.token for a in self._allocations} - {self.base_asset}
        if not targeted:
            return
        if token == self.base_asset:
            mismatched = sorted(
                t for t in targeted
                if t in self._bindings and self._bindings[t].decimals != decimals
            )
            if mismatched:
                raise ValidationError(
                    f"Base price source decimals {decimals} differ from allocated "
                    f"tokens {', '.join(mismatched)}"
                )
        elif token in targeted:
            base_binding = self._bindings.get(self.base_asset)
            if base_binding is not None and base_binding.decimals != decimals:
                raise ValidationError(
                    f"Price source decimals {decimals} for allocated token {token} "
                    f"differ from base asset's {base_binding.decimals}"
                )

    # ─── Tracking ─────────────────────────────────────────────────────────

    def tracked_tokens(self) -> list[str]:
        """Non-base tokens counted in Total Value.

        Allocation tokens come first, then allowed ones, then any other
        registered token that still has a balance.
        """
        tokens: dict[str, None] = {}
        for alloc in self._allocations:
            tokens[alloc.token] = None
        for token in self._allowed:
            tokens[token] = None
        for token in self._holdings.non_zero():
            if self._holdings.is_registered(token):
                tokens[token] = None
        tokens.pop(self.base_asset, None)
        return list(tokens)
