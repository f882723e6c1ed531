"""
Coffee variety, grade and month normalization.

Every public resolver entry point runs its inputs through these helpers
before touching the cache or the quote source.
"""

import math
import numbers
from decimal import Decimal
from enum import Enum
from typing import Any

from .errors import (
    InvalidAmountError,
    InvalidGradeError,
    InvalidMonthError,
    InvalidVarietyError,
)


class CoffeeVariety(Enum):
    """Supported coffee varieties (canonical upper-case form)."""
    ARABICA = "ARABICA"
    ROBUSTA = "ROBUSTA"
    SPECIALTY = "SPECIALTY"
    ORGANIC = "ORGANIC"
    TYPICA = "TYPICA"


GRADE_MIN = 1
GRADE_MAX = 10
MONTH_MIN = 1
MONTH_MAX = 12

# Upper bounds (inclusive) for each quality band
GRADE_BANDS = (
    (3, "Low Quality"),
    (6, "Medium Quality"),
    (8, "High Quality"),
    (10, "Premium Quality"),
)


def normalize_variety(variety: Any) -> str:
    """
    Return the canonical upper-case variety name.

    Accepts CoffeeVariety members or case-insensitive strings.

    Raises:
        InvalidVarietyError: If the input is empty, not a string, or unknown
    """
    if isinstance(variety, CoffeeVariety):
        return variety.value

    if not isinstance(variety, str) or not variety:
        raise InvalidVarietyError(variety)

    normalized = variety.upper()
    if normalized not in CoffeeVariety.__members__:
        raise InvalidVarietyError(variety)
    return normalized


def _as_int(value: Any) -> Any:
    """Coerce integral numbers to int, returning None for anything else."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    if isinstance(value, numbers.Integral):
        return int(value)
    if math.isfinite(value) and float(value).is_integer():
        return int(value)
    return None


def validate_grade(grade: Any) -> int:
    """Validate a 1-10 quality grade."""
    value = _as_int(grade)
    if value is None or not GRADE_MIN <= value <= GRADE_MAX:
        raise InvalidGradeError(grade)
    return value


def validate_month(month: Any) -> int:
    """Validate a 1-12 calendar month."""
    value = _as_int(month)
    if value is None or not MONTH_MIN <= value <= MONTH_MAX:
        raise InvalidMonthError(month)
    return value


def validate_amount(field: str, value: Any, allow_zero: bool = False) -> float:
    """
    Validate a finite numeric amount.

    Args:
        field: Name used in the error message
        value: Amount to check
        allow_zero: Accept 0 (base prices) instead of requiring > 0

    Returns:
        The amount as a float
    """
    requirement = "a non-negative number" if allow_zero else "a positive number"
    if isinstance(value, bool) or not isinstance(value, (numbers.Real, Decimal)):
        raise InvalidAmountError(field, value, requirement)
    # float() raises on signaling NaN
    if isinstance(value, Decimal) and not value.is_finite():
        raise InvalidAmountError(field, value, requirement)

    amount = float(value)
    if not math.isfinite(amount):
        raise InvalidAmountError(field, value, requirement)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmountError(field, value, requirement)
    return amount


def is_valid_variety(variety: Any) -> bool:
    try:
        normalize_variety(variety)
    except InvalidVarietyError:
        return False
    return True


def is_valid_grade(grade: Any) -> bool:
    try:
        validate_grade(grade)
    except InvalidGradeError:
        return False
    return True


def describe_grade(grade: Any) -> str:
    """Human-readable quality band for a grade ("Invalid" if out of range)."""
    if not is_valid_grade(grade):
        return "Invalid"
    value = validate_grade(grade)
    for upper, label in GRADE_BANDS:
        if value <= upper:
            return label
    return "Invalid"


def cache_key(variety: str, grade: int) -> str:
    """Cache key for an already-normalized (variety, grade) pair."""
    return f"{variety}:{grade}"
