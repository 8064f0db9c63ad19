"""
Advice intake: parse, validate and convert advisory allocation payloads.
"""

from .parser import (
    AdviceError,
    AdviceIssue,
    AdvisedAllocation,
    InvestmentAdvice,
    normalize_percentages,
    parse_advice,
    to_allocations,
    validate_advice,
)

__all__ = [
    "AdviceError",
    "AdviceIssue",
    "AdvisedAllocation",
    "InvestmentAdvice",
    "normalize_percentages",
    "parse_advice",
    "to_allocations",
    "validate_advice",
]
