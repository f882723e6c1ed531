"""
Price Resolver for the coffee price oracle.

Resolves variety/grade quotes from the remote quote source with:
- A 5 minute in-memory cache of fresh base quotes
- Staleness detection (quotes older than 24 hours are flagged, never cached)
- Seasonal price and revenue projection lookups
- Sale price validation against the 50%-200% market band

All inputs are validated before any remote call. Quote source failures are
wrapped in PriceFetchError and re-raised; nothing is retried here.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from .. import metrics
from ..logging_utils import PricingLogger, get_pricing_logger
from .cache import PriceCache
from .errors import ConfigurationError, PriceFetchError, StalePriceError
from .models import (
    PriceQuote,
    PriceRange,
    RevenueProjection,
    SeasonalQuote,
    ValidationResult,
    pick_field,
    parse_price,
)
from .quote_source import QuoteSource
from .staleness import Clock, StalenessPolicy, parse_timestamp, system_clock
from .varieties import (
    cache_key,
    normalize_variety,
    validate_amount,
    validate_grade,
    validate_month,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Metric label -> phrase used in PriceFetchError messages
OPERATIONS = {
    "quote": "fetch coffee prices",
    "seasonal_quote": "fetch seasonal price",
    "all_quotes": "fetch all variety prices",
    "seasonal_multipliers": "fetch seasonal multipliers",
    "revenue_projection": "calculate projected revenue",
    "price_validation": "validate sale price",
}


@dataclass
class ResolverMetrics:
    """Counters for price resolution."""
    cache_hits: int = 0
    cache_misses: int = 0
    remote_fetches: int = 0
    stale_quotes: int = 0
    fetch_failures: int = 0
    total_latency_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        if self.remote_fetches == 0:
            return 0.0
        return self.total_latency_ms / self.remote_fetches

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "remote_fetches": self.remote_fetches,
            "stale_quotes": self.stale_quotes,
            "fetch_failures": self.fetch_failures,
            "avg_latency_ms": round(self.avg_latency_ms, 2),
        }


class PriceResolver:
    """
    Resolves and validates coffee prices for (variety, grade) pairs.

    One resolver owns one cache; create it once per process and share it.
    Concurrent get_quote() calls for the same uncached key may each hit the
    quote source; the last write wins.
    """

    CACHE_TTL = timedelta(minutes=5)
    STALE_THRESHOLD = timedelta(hours=24)
    MIN_PRICE_MULTIPLIER = 0.5
    MAX_PRICE_MULTIPLIER = 2.0

    def __init__(
        self,
        quote_source: Optional[QuoteSource],
        clock: Optional[Clock] = None,
        cache_ttl: timedelta = CACHE_TTL,
        pricing_logger: Optional[PricingLogger] = None,
    ):
        """
        Initialize the price resolver.

        Args:
            quote_source: Client for the remote pricing service
            clock: Source of "now" for TTL and staleness checks
            cache_ttl: How long fresh base quotes are served from cache
            pricing_logger: Structured event logger

        Raises:
            ConfigurationError: If no quote source is supplied
        """
        if quote_source is None:
            raise ConfigurationError("A quote source is required for PriceResolver")

        self.quote_source = quote_source
        self.clock = clock or system_clock
        self.min_price_multiplier = self.MIN_PRICE_MULTIPLIER
        self.max_price_multiplier = self.MAX_PRICE_MULTIPLIER

        self._staleness = StalenessPolicy(clock=self.clock, threshold=self.STALE_THRESHOLD)
        self._cache = PriceCache(ttl=cache_ttl, clock=self.clock)
        self.events = pricing_logger or get_pricing_logger()

        self.metrics = ResolverMetrics()

        logger.info(
            f"PriceResolver initialized (cache_ttl={cache_ttl.total_seconds():.0f}s, "
            f"stale_threshold={self.STALE_THRESHOLD.total_seconds() / 3600:.0f}h)"
        )

    @property
    def cache_ttl(self) -> timedelta:
        return self._cache.ttl

    @property
    def stale_threshold(self) -> timedelta:
        return self._staleness.threshold

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    async def get_quote(self, variety: Any, grade: Any) -> PriceQuote:
        """
        Get the base price for a variety and grade.

        Serves fresh cached quotes for up to the cache TTL. Stale quotes are
        returned to the caller but never cached.

        Raises:
            InvalidVarietyError, InvalidGradeError: On bad input
            PriceFetchError: If the quote source fails
        """
        variety = normalize_variety(variety)
        grade = validate_grade(grade)
        key = cache_key(variety, grade)

        # Entries can age past the stale threshold while still within the TTL
        peeked = self._cache.peek(key)
        if peeked is not None and self._staleness.is_stale(peeked.last_updated):
            logger.info(f"Cached price for {variety} grade {grade} is stale, fetching fresh data")
            self._evict(key, "stale")

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached price for {variety} grade {grade}")
            self.metrics.cache_hits += 1
            metrics.record_cache_lookup(hit=True)
            self.events.log_quote("quote", variety, grade, cached.base_price, False, cached=True)
            return cached

        self.metrics.cache_misses += 1
        metrics.record_cache_lookup(hit=False)

        quote = await self._fetch(
            "quote",
            lambda: self.quote_source.fetch_quote(variety, grade),
            lambda data: PriceQuote.from_source(
                data, variety, grade, self.is_price_stale(data.get("lastUpdated"))
            ),
            variety,
            grade,
        )

        if quote.is_stale:
            self._note_stale("quote", variety, grade, quote.last_updated)
        else:
            self._cache.set(key, quote)

        self.events.log_quote("quote", variety, grade, quote.base_price, quote.is_stale)
        return quote

    async def get_seasonal_quote(self, variety: Any, grade: Any, month: Any) -> SeasonalQuote:
        """
        Get the seasonally adjusted price for a harvest month.

        Always a fresh round trip; seasonal quotes are not cached.
        """
        variety = normalize_variety(variety)
        grade = validate_grade(grade)
        month = validate_month(month)

        quote = await self._fetch(
            "seasonal_quote",
            lambda: self.quote_source.fetch_seasonal_quote(variety, grade, month),
            lambda data: SeasonalQuote.from_source(
                data, variety, grade, self.is_price_stale(data.get("lastUpdated")), month=month
            ),
            variety,
            grade,
        )

        if quote.is_stale:
            self._note_stale("seasonal_quote", variety, grade, quote.last_updated)

        self.events.log_quote(
            "seasonal_quote", variety, grade, quote.base_price, quote.is_stale,
            metadata={"month": month, "multiplier": quote.multiplier},
        )
        return quote

    async def get_all_quotes(self) -> List[PriceQuote]:
        """Every variety/grade quote, each flagged for staleness. Not cached."""
        quotes = await self._fetch(
            "all_quotes",
            self.quote_source.fetch_all_quotes,
            lambda items: [self._parse_listed_quote(item) for item in items],
        )

        stale_count = sum(1 for quote in quotes if quote.is_stale)
        if stale_count:
            logger.warning(f"{stale_count} of {len(quotes)} variety prices are stale")
            self.metrics.stale_quotes += stale_count
            for _ in range(stale_count):
                metrics.record_stale_quote("all_quotes")

        return quotes

    async def get_seasonal_multipliers(self) -> Dict[int, float]:
        """Month (1-12) to seasonal multiplier, as reported by the source."""
        return await self._fetch(
            "seasonal_multipliers",
            self.quote_source.fetch_seasonal_multipliers,
            lambda data: data,
        )

    # -------------------------------------------------------------------------
    # Revenue projection
    # -------------------------------------------------------------------------

    async def compute_revenue_projection(
        self,
        grove_token: str,
        variety: Any,
        grade: Any,
        yield_kg: Any,
        harvest_month: Any,
    ) -> RevenueProjection:
        """
        Project harvest revenue for a grove.

        The quote source does the calculation (price lookup, seasonal
        adjustment, yield). The cached quote for the pair is dropped first;
        a fresh result repopulates it, a stale one leaves it empty and is
        returned flagged so the caller can warn or reject.
        """
        variety = normalize_variety(variety)
        grade = validate_grade(grade)
        harvest_month = validate_month(harvest_month)
        yield_kg = validate_amount("yield_kg", yield_kg)

        key = cache_key(variety, grade)
        self._evict(key, "projection")

        projection = await self._fetch(
            "revenue_projection",
            lambda: self.quote_source.compute_revenue(
                grove_token, variety, grade, yield_kg, harvest_month
            ),
            lambda data: RevenueProjection.from_source(
                data,
                grove_token=grove_token,
                variety=variety,
                grade=grade,
                yield_kg=yield_kg,
                harvest_month=harvest_month,
                is_stale=self.is_price_stale(data.get("lastUpdated")),
            ),
            variety,
            grade,
        )

        if projection.is_stale:
            self._note_stale("revenue_projection", variety, grade, projection.last_updated)
            self._evict(key, "stale")
        else:
            self._cache.set(key, PriceQuote(
                variety=variety,
                grade=grade,
                base_price=projection.breakdown.base_price,
                last_updated=projection.last_updated,
                is_active=True,
                is_stale=False,
            ))

        self.events.log_projection(
            grove_token, variety, grade, yield_kg, harvest_month,
            projection.projected_revenue, projection.is_stale,
        )
        return projection

    # -------------------------------------------------------------------------
    # Price validation
    # -------------------------------------------------------------------------

    async def validate_sale_price(
        self,
        variety: Any,
        grade: Any,
        proposed_price: Any,
    ) -> ValidationResult:
        """
        Check a proposed sale price against the market band.

        The quote source supplies the market price and verdict; staleness is
        recomputed locally from its lastUpdated.
        """
        variety = normalize_variety(variety)
        grade = validate_grade(grade)
        proposed_price = validate_amount("proposed_price", proposed_price)

        result = await self._fetch(
            "price_validation",
            lambda: self.quote_source.validate_price(variety, grade, proposed_price),
            lambda data: self._parse_validation(data, variety, grade, proposed_price),
            variety,
            grade,
        )

        if result.is_stale:
            self._note_stale("price_validation", variety, grade, result.last_updated)

        metrics.record_price_validation(result.is_valid)
        self.events.log_validation(
            variety, grade, proposed_price, result.market_price,
            result.is_valid, result.is_stale, result.reason,
        )
        return result

    def get_price_range(self, market_price: Any) -> PriceRange:
        """Acceptable sale price band (50%-200%) around a market price."""
        market_price = validate_amount("market_price", market_price)
        return self._band(market_price)

    def is_price_in_range(self, proposed_price: Any, market_price: Any) -> bool:
        """Client-side band check, for use before a validation round trip."""
        proposed_price = validate_amount("proposed_price", proposed_price)
        return self.get_price_range(market_price).contains(proposed_price)

    @staticmethod
    def apply_seasonal_multiplier(base_price: Any, multiplier: Any) -> float:
        """Base price adjusted by a seasonal multiplier."""
        base_price = validate_amount("base_price", base_price, allow_zero=True)
        multiplier = validate_amount("multiplier", multiplier)
        return base_price * multiplier

    # -------------------------------------------------------------------------
    # Staleness and cache control
    # -------------------------------------------------------------------------

    def is_price_stale(self, last_updated: Any) -> bool:
        """True if last_updated is missing, unparseable or older than the threshold."""
        return self._staleness.is_stale(last_updated)

    def is_cached(self, variety: Any, grade: Any) -> bool:
        """True if a quote for the pair would be served from cache (within TTL)."""
        key = cache_key(normalize_variety(variety), validate_grade(grade))
        return self._cache.peek(key) is not None

    def invalidate(self, variety: Any, grade: Any) -> bool:
        """Drop the cached quote for a pair. Returns True if one was cached."""
        key = cache_key(normalize_variety(variety), validate_grade(grade))
        return self._evict(key, "manual")

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_metrics(self) -> Dict[str, Any]:
        """Resolver and cache metrics."""
        result = self.metrics.to_dict()
        result["cache"] = self._cache.get_metrics()
        return result

    def reset_metrics(self) -> None:
        self.metrics = ResolverMetrics()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _fetch(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        parse: Callable[[Any], T],
        variety: Optional[str] = None,
        grade: Optional[int] = None,
    ) -> T:
        """Run a quote source call and parse its payload, wrapping any failure."""
        start_time = time.monotonic()
        try:
            payload = await call()
            result = parse(payload)
        except Exception as e:
            latency = time.monotonic() - start_time
            self.metrics.fetch_failures += 1
            metrics.record_remote_fetch(operation, success=False, latency_seconds=latency)
            context = f" for {variety} grade {grade}" if variety is not None else ""
            logger.error(f"Error during {OPERATIONS[operation]}{context}: {e}")
            self.events.log_fetch_failure(operation, str(e), variety, grade)
            raise PriceFetchError(OPERATIONS[operation], e, variety, grade) from e

        latency = time.monotonic() - start_time
        self.metrics.remote_fetches += 1
        self.metrics.total_latency_ms += latency * 1000
        metrics.record_remote_fetch(operation, success=True, latency_seconds=latency)
        return result

    def _evict(self, key: str, reason: str) -> bool:
        removed = self._cache.invalidate(key)
        if removed:
            metrics.record_cache_eviction(reason)
        return removed

    def _note_stale(self, operation: str, variety: str, grade: int, last_updated: Any) -> None:
        self.metrics.stale_quotes += 1
        metrics.record_stale_quote(operation)
        logger.warning(
            f"Price data for {variety} grade {grade} is stale "
            f"(operation={operation}, last updated: {last_updated})"
        )

    def _band(self, market_price: float) -> PriceRange:
        return PriceRange(
            min_price=market_price * self.min_price_multiplier,
            max_price=market_price * self.max_price_multiplier,
        )

    def _parse_listed_quote(self, item: Dict[str, Any]) -> PriceQuote:
        variety = str(item.get("variety", "")).upper()
        grade = int(item["grade"])
        return PriceQuote.from_source(
            item, variety, grade, self.is_price_stale(item.get("lastUpdated"))
        )

    def _parse_validation(
        self,
        data: Dict[str, Any],
        variety: str,
        grade: int,
        proposed_price: float,
    ) -> ValidationResult:
        market_price = parse_price(data, "marketPrice")
        band = self._band(market_price)
        min_price = parse_price(data, "minPrice", required=False)
        max_price = parse_price(data, "maxPrice", required=False)
        band = PriceRange(
            min_price=band.min_price if min_price is None else min_price,
            max_price=band.max_price if max_price is None else max_price,
        )

        is_valid = data.get("isValid")
        if is_valid is None:
            is_valid = band.contains(proposed_price)
        is_valid = bool(is_valid)

        reason = pick_field(data, "reason", "message")
        if reason is None and not is_valid:
            if proposed_price < band.min_price:
                reason = f"Price too low. Minimum acceptable: ${band.min_price:.2f}/kg"
            else:
                reason = f"Price too high. Maximum acceptable: ${band.max_price:.2f}/kg"

        return ValidationResult(
            is_valid=is_valid,
            market_price=market_price,
            min_price=band.min_price,
            max_price=band.max_price,
            proposed_price=proposed_price,
            variety=variety,
            grade=grade,
            is_stale=self.is_price_stale(data.get("lastUpdated")),
            last_updated=parse_timestamp(data.get("lastUpdated")),
            reason=reason,
        )


def require_fresh(result: Any) -> Any:
    """
    Return a quote/projection/validation unchanged unless it is stale.

    Raises:
        StalePriceError: If result.is_stale is set
    """
    if getattr(result, "is_stale", False):
        last_updated = getattr(result, "last_updated", None)
        raise StalePriceError(
            f"Price data is stale (last updated: {last_updated or 'unknown'})",
            last_updated,
        )
    return result
