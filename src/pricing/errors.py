"""
Pricing error taxonomy.

Input errors (variety, grade, month, amount) are raised synchronously before
any remote call and should not be retried. PriceFetchError wraps whatever the
quote source raised, keeping the variety/grade context for display.
"""

from typing import Any, Optional


class PricingError(Exception):
    """Base class for all price oracle errors."""

    pass


class ConfigurationError(PricingError):
    """Raised when the resolver or its settings are wired incorrectly."""

    pass


class InvalidVarietyError(PricingError):
    """Variety is not one of the supported coffee varieties."""

    def __init__(self, variety: Any):
        self.variety = variety
        super().__init__(f"Invalid coffee variety: {variety!r}")


class InvalidGradeError(PricingError):
    """Grade is not an integer between 1 and 10."""

    def __init__(self, grade: Any):
        self.grade = grade
        super().__init__(f"Invalid coffee grade: {grade!r}. Must be between 1-10")


class InvalidMonthError(PricingError):
    """Month is not an integer between 1 and 12."""

    def __init__(self, month: Any):
        self.month = month
        super().__init__(f"Invalid month: {month!r}. Must be between 1-12")


class InvalidAmountError(PricingError):
    """A numeric amount (yield, price, multiplier) is out of range."""

    def __init__(self, field: str, value: Any, requirement: str = "a positive number"):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be {requirement}, got {value!r}")


class PriceFetchError(PricingError):
    """The quote source failed while serving a pricing request."""

    def __init__(
        self,
        operation: str,
        cause: BaseException,
        variety: Optional[str] = None,
        grade: Optional[int] = None,
    ):
        self.operation = operation
        self.cause = cause
        self.variety = variety
        self.grade = grade

        context = ""
        if variety is not None:
            context = f" for {variety}" + (f" grade {grade}" if grade is not None else "")
        super().__init__(f"Failed to {operation}{context}: {cause}")


class StalePriceError(PricingError):
    """Raised by callers that refuse to act on stale price data."""

    def __init__(self, message: str, last_updated: Any = None):
        self.last_updated = last_updated
        super().__init__(message)


class QuoteSourceError(Exception):
    """Transport-level failure reported by a quote source."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message if status is None else f"HTTP {status}: {message}")
