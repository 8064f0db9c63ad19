"""
Advice intake — turns an advisory allocation payload into a Target Portfolio.

The advisor answers with JSON of the shape::

    {
      "allocations": [
        {"token": "WETH", "percentage": 60, "amount": 600, "tokenAddress": "0x..."},
        ...
      ],
      "reasons": "...",
      "estimatedValue": 1000,
      "warnings": "..."
    }

often wrapped in markdown code fences. Percentages are converted to basis
points by flooring ``percentage * 100``.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from aibasket.exceptions import BasketError
from aibasket.models.types import Allocation

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
PERCENT_TOLERANCE = 0.01


class AdviceError(BasketError):
    """The advice text is not a usable allocation payload."""


class AdvisedAllocation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = ""
    percentage: float = 0.0
    amount: float = 0.0
    token_address: str = Field(default="", alias="tokenAddress")


class InvestmentAdvice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allocations: list[AdvisedAllocation] = Field(default_factory=list)
    reasons: str = ""
    estimated_value: float = Field(default=0.0, alias="estimatedValue")
    warnings: str = ""


@dataclass(frozen=True)
class AdviceIssue:
    """One problem found in an advice payload; ``index`` is -1 for the total."""

    index: int
    field: str
    message: str


def _extract_json(text: str) -> dict:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for marker in ("```json", "```"):
        if marker in text:
            start = text.index(marker) + len(marker)
            end = text.find("```", start)
            if end < 0:
                end = len(text)
            try:
                return json.loads(text[start:end].strip())
            except json.JSONDecodeError:
                pass

    brace_start = text.find("{")
    brace_end = text.rfind("}") + 1
    if brace_start >= 0 and brace_end > brace_start:
        try:
            return json.loads(text[brace_start:brace_end])
        except json.JSONDecodeError:
            pass

    raise AdviceError("No JSON object found in advice text")


def parse_advice(text: str) -> InvestmentAdvice:
    """Parse raw advisor output (plain or fenced JSON) into ``InvestmentAdvice``."""
    payload = _extract_json(text)
    if not isinstance(payload, dict):
        raise AdviceError("Advice payload must be a JSON object")
    try:
        return InvestmentAdvice.model_validate(payload)
    except PydanticValidationError as exc:
        logger.warning("Malformed advice payload: %s", exc)
        raise AdviceError(f"Malformed advice payload: {exc}") from exc


def validate_advice(advice: InvestmentAdvice) -> list[AdviceIssue]:
    """Return every problem with ``advice``; an empty list means it is usable."""
    issues: list[AdviceIssue] = []
    total = 0.0

    for index, alloc in enumerate(advice.allocations):
        if not alloc.token.strip():
            issues.append(AdviceIssue(index, "token", "Token name is required"))

        if alloc.percentage <= 0:
            issues.append(AdviceIssue(index, "percentage", "Percentage must be greater than 0"))
        elif alloc.percentage > 100:
            issues.append(AdviceIssue(index, "percentage", "Percentage cannot exceed 100%"))

        if not alloc.token_address.strip():
            issues.append(AdviceIssue(index, "tokenAddress", "Token address is required"))
        elif not ADDRESS_RE.match(alloc.token_address):
            issues.append(AdviceIssue(index, "tokenAddress", "Invalid address format"))

        total += alloc.percentage

    if abs(total - 100) > PERCENT_TOLERANCE:
        issues.append(
            AdviceIssue(-1, "total", f"Total percentage is {total:.2f}%. Must equal 100%")
        )
    return issues


def normalize_percentages(advice: InvestmentAdvice) -> InvestmentAdvice:
    """Rescale percentages (and amounts) so they sum to 100."""
    total = sum(a.percentage for a in advice.allocations)
    if total <= 0:
        return advice
    estimated = advice.estimated_value
    allocations = [
        a.model_copy(
            update={
                "percentage": a.percentage / total * 100,
                "amount": estimated * a.percentage / total if estimated else a.amount,
            }
        )
        for a in advice.allocations
    ]
    return advice.model_copy(update={"allocations": allocations})


def to_allocations(advice: InvestmentAdvice) -> list[Allocation]:
    """Convert percentages to basis-point allocations keyed by token address."""
    return [
        Allocation(token=a.token_address.strip().lower(), weight_bps=math.floor(a.percentage * 100))
        for a in advice.allocations
    ]
