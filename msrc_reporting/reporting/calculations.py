"""
mSRC Reporting - Calculation helpers

Coercion of SQL aggregates, gender triples, rates and the number formatting
the dashboard front end reads.
"""

import math
import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Optional, Union

Number = Union[int, float]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def to_int(value: Any) -> int:
    """Coerce a SQL sum (None, Decimal, float or numeric string) to an int; junk is 0."""
    if value is None or isinstance(value, bool):
        return int(bool(value))
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def to_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def gender_triple(male: Any, female: Any) -> Dict[str, int]:
    """{total, male, female} with total derived here, never taken from SQL."""
    male_count = to_int(male)
    female_count = to_int(female)
    return {
        "total": male_count + female_count,
        "male": male_count,
        "female": female_count,
    }


def safe_rate(numerator: Any, denominator: Any, default: Number = 0) -> float:
    """numerator / denominator * 100, `default` when the denominator is zero."""
    denominator = to_float(denominator)
    if denominator == 0:
        return default
    return to_float(numerator) / denominator * 100


def to_fixed(value: Any, digits: int = 1) -> str:
    """
    Format like JavaScript's Number.prototype.toFixed: the exact binary value
    is rounded with ties away from zero ("0.25" -> "0.3", "2.5" -> "3").
    """
    number = to_float(value)
    quantum = Decimal(1).scaleb(-digits)
    try:
        rounded = Decimal(number).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return f"{number:.{digits}f}"
    if rounded == 0:
        rounded = abs(rounded)
    return f"{rounded:.{digits}f}"


def percentage(numerator: Any, denominator: Any, digits: int = 1) -> str:
    """Share of total as a fixed-point string; an empty denominator gives 0."""
    return to_fixed(safe_rate(numerator, denominator, default=0), digits)


def js_round(value: Any) -> int:
    """Math.round: halves go towards +infinity."""
    return int(math.floor(to_float(value) + 0.5))


def round_to(value: Any, digits: int = 2) -> float:
    """parseFloat(x.toFixed(digits))"""
    return float(to_fixed(value, digits))


def gender_gap(male: Any, female: Any, with_percentage: bool = True) -> Dict[str, Any]:
    """
    Female minus male. The percentage is relative to the male count and is 0
    when there are no males rather than infinite.
    """
    male_count = to_int(male)
    female_count = to_int(female)
    gap = {
        "male": male_count,
        "female": female_count,
        "gap": female_count - male_count,
    }
    if with_percentage:
        gap["gapPercentage"] = (
            round_to((female_count - male_count) / male_count * 100, 1) if male_count > 0 else 0
        )
    return gap


def average(values, digits: Optional[int] = None) -> float:
    values = [to_float(v) for v in values]
    if not values:
        return 0
    result = sum(values) / len(values)
    return round_to(result, digits) if digits is not None else result
