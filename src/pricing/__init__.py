"""
Pricing module for the coffee price oracle.

Provides cached, staleness-aware variety/grade price resolution and sale
price validation.
"""

from .errors import (
    PricingError,
    ConfigurationError,
    InvalidVarietyError,
    InvalidGradeError,
    InvalidMonthError,
    InvalidAmountError,
    PriceFetchError,
    StalePriceError,
    QuoteSourceError,
)
from .varieties import CoffeeVariety, describe_grade, normalize_variety
from .models import (
    PriceQuote,
    SeasonalQuote,
    RevenueBreakdown,
    RevenueProjection,
    PriceRange,
    ValidationResult,
)
from .cache import PriceCache
from .staleness import StalenessPolicy, parse_timestamp
from .quote_source import QuoteSource, HttpQuoteSource
from .price_resolver import PriceResolver, require_fresh

__all__ = [
    "PricingError",
    "ConfigurationError",
    "InvalidVarietyError",
    "InvalidGradeError",
    "InvalidMonthError",
    "InvalidAmountError",
    "PriceFetchError",
    "StalePriceError",
    "QuoteSourceError",
    "CoffeeVariety",
    "describe_grade",
    "normalize_variety",
    "PriceQuote",
    "SeasonalQuote",
    "RevenueBreakdown",
    "RevenueProjection",
    "PriceRange",
    "ValidationResult",
    "PriceCache",
    "StalenessPolicy",
    "parse_timestamp",
    "QuoteSource",
    "HttpQuoteSource",
    "PriceResolver",
    "require_fresh",
]
