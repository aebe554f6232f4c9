"""Rounding and ratio helpers shared by the aggregators.

Rounding is half-up (``floor(x * 10**n + 0.5)``) rather than Python's
round-half-to-even, so metric values stay comparable across agent versions.
"""

import math
from typing import Callable, Sequence, TypeVar

T = TypeVar('T')


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round to ``ndigits`` decimals, halves going up."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def percent(items: Sequence[T], predicate: Callable[[T], bool]) -> int:
    """Integer percentage of items matching the predicate (0 for no items)."""
    if not items:
        return 0
    matching = sum(1 for item in items if predicate(item))
    return int(round_half_up(matching / len(items) * 100))


def mean(values: Sequence[float], ndigits: int = 1) -> float:
    """Mean rounded to ``ndigits`` decimals (0 for no values)."""
    if not values:
        return 0
    return round_half_up(sum(values) / len(values), ndigits)
