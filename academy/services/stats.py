"""Numeric helpers for progress and analytics figures.

Rates and averages are rounded half-up to two decimals (so 12.345 -> 12.35,
matching what dashboards display), and every helper is total: an empty
denominator yields 0.0 rather than ZeroDivisionError or NaN.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

_CENTS = Decimal("0.01")


def round2(value: float) -> float:
    # Decimal of the shortest repr, so 12.345 is not seen as 12.3449999...
    return float(Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _ratio_percent(part: int, whole: int) -> float:
    # Exact quotient, rounded once
    exact = Decimal(part) * 100 / Decimal(whole)
    return float(exact.quantize(_CENTS, rounding=ROUND_HALF_UP))


def percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return _ratio_percent(part, whole)


def percent_remaining(part: int, whole: int) -> float:
    """Share of ``whole`` not covered by ``part``, e.g. a dropoff rate."""
    if whole <= 0:
        return 0.0
    return _ratio_percent(whole - part, whole)


def mean(values: Iterable[float]) -> float:
    items = list(values)
    if not items:
        return 0.0
    return round2(sum(items) / len(items))
