"""
Coffee Price Oracle
Client-side market data layer for tokenized coffee groves: variety/grade
price quotes, staleness detection, seasonal revenue projection and sale
price validation.
"""

__version__ = "0.1.0"
__author__ = "Coffee Price Oracle"

from .pricing import (
    PriceResolver,
    QuoteSource,
    HttpQuoteSource,
    CoffeeVariety,
    PriceQuote,
    SeasonalQuote,
    RevenueProjection,
    ValidationResult,
    PricingError,
)

__all__ = [
    "PriceResolver",
    "QuoteSource",
    "HttpQuoteSource",
    "CoffeeVariety",
    "PriceQuote",
    "SeasonalQuote",
    "RevenueProjection",
    "ValidationResult",
    "PricingError",
]
