"""
Price oracle result types.

Quote source payloads arrive as camelCase JSON dicts. The from_source
constructors translate them into these dataclasses; a malformed payload
raises ValueError so the resolver can report it as a fetch failure.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .staleness import parse_timestamp


def pick_field(data: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """First present key among several wire aliases."""
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return default


def parse_price(data: Mapping[str, Any], *names: str, required: bool = True) -> Optional[float]:
    value = pick_field(data, *names)
    if value is None:
        if required:
            raise ValueError(f"Quote source payload missing {names[0]}")
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Quote source payload has non-numeric {names[0]}: {value!r}")
    if not math.isfinite(amount) or amount < 0:
        raise ValueError(f"Quote source payload has invalid {names[0]}: {value!r}")
    return amount


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class PriceQuote:
    """Base price for one (variety, grade) pair."""
    variety: str
    grade: int
    base_price: float
    last_updated: Optional[datetime]
    is_active: bool = True
    is_stale: bool = False

    @classmethod
    def from_source(
        cls,
        data: Mapping[str, Any],
        variety: str,
        grade: int,
        is_stale: bool,
    ) -> "PriceQuote":
        return cls(
            variety=variety,
            grade=grade,
            base_price=parse_price(data, "basePrice", "price"),
            last_updated=parse_timestamp(data.get("lastUpdated")),
            is_active=bool(data.get("isActive", True)),
            is_stale=is_stale,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variety": self.variety,
            "grade": self.grade,
            "basePrice": self.base_price,
            "lastUpdated": _iso(self.last_updated),
            "isActive": self.is_active,
            "isStale": self.is_stale,
        }


@dataclass(frozen=True)
class SeasonalQuote(PriceQuote):
    """Base quote plus the month's seasonal adjustment."""
    seasonal_price: float = 0.0
    multiplier: float = 1.0
    month: int = 1

    @classmethod
    def from_source(
        cls,
        data: Mapping[str, Any],
        variety: str,
        grade: int,
        is_stale: bool,
        month: int = 1,
    ) -> "SeasonalQuote":
        base_price = parse_price(data, "basePrice", "price")
        multiplier = parse_price(data, "multiplier", "seasonalMultiplier")
        seasonal_price = parse_price(data, "seasonalPrice", required=False)
        if seasonal_price is None:
            seasonal_price = base_price * multiplier

        return cls(
            variety=variety,
            grade=grade,
            base_price=base_price,
            last_updated=parse_timestamp(data.get("lastUpdated")),
            is_active=bool(data.get("isActive", True)),
            is_stale=is_stale,
            seasonal_price=seasonal_price,
            multiplier=multiplier,
            month=month,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "seasonalPrice": self.seasonal_price,
            "multiplier": self.multiplier,
            "month": self.month,
        })
        return result


@dataclass(frozen=True)
class RevenueBreakdown:
    """How a projected revenue figure was assembled."""
    base_price: float
    seasonal_multiplier: float
    seasonal_price: float
    yield_kg: float

    @classmethod
    def from_source(cls, data: Mapping[str, Any], yield_kg: float) -> "RevenueBreakdown":
        # Breakdown may be nested or flattened into the top-level payload
        source = data.get("breakdown") or data
        base_price = parse_price(source, "basePrice", "price")
        multiplier = parse_price(source, "seasonalMultiplier", "multiplier")
        seasonal_price = parse_price(source, "seasonalPrice", "pricePerKg", required=False)
        if seasonal_price is None:
            seasonal_price = base_price * multiplier

        return cls(
            base_price=base_price,
            seasonal_multiplier=multiplier,
            seasonal_price=seasonal_price,
            yield_kg=parse_price(source, "expectedYieldKg", "yieldKg", required=False) or yield_kg,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "basePrice": self.base_price,
            "seasonalMultiplier": self.seasonal_multiplier,
            "seasonalPrice": self.seasonal_price,
            "yieldKg": self.yield_kg,
        }


@dataclass(frozen=True)
class RevenueProjection:
    """Projected harvest revenue for a grove token."""
    grove_token: str
    variety: str
    grade: int
    yield_kg: float
    harvest_month: int
    projected_revenue: float
    breakdown: RevenueBreakdown
    last_updated: Optional[datetime]
    is_stale: bool

    @classmethod
    def from_source(
        cls,
        data: Mapping[str, Any],
        grove_token: str,
        variety: str,
        grade: int,
        yield_kg: float,
        harvest_month: int,
        is_stale: bool,
    ) -> "RevenueProjection":
        return cls(
            grove_token=grove_token,
            variety=variety,
            grade=grade,
            yield_kg=yield_kg,
            harvest_month=harvest_month,
            projected_revenue=parse_price(data, "projectedRevenue"),
            breakdown=RevenueBreakdown.from_source(data, yield_kg),
            last_updated=parse_timestamp(data.get("lastUpdated")),
            is_stale=is_stale,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groveToken": self.grove_token,
            "variety": self.variety,
            "grade": self.grade,
            "yieldKg": self.yield_kg,
            "harvestMonth": self.harvest_month,
            "projectedRevenue": self.projected_revenue,
            "breakdown": self.breakdown.to_dict(),
            "lastUpdated": _iso(self.last_updated),
            "isStale": self.is_stale,
        }


@dataclass(frozen=True)
class PriceRange:
    """Acceptable price band around a market price."""
    min_price: float
    max_price: float

    def contains(self, price: float) -> bool:
        return self.min_price <= price <= self.max_price

    def to_dict(self) -> Dict[str, float]:
        return {"minPrice": self.min_price, "maxPrice": self.max_price}


@dataclass(frozen=True)
class ValidationResult:
    """Verdict on a proposed sale price."""
    is_valid: bool
    market_price: float
    min_price: float
    max_price: float
    proposed_price: float
    variety: str
    grade: int
    is_stale: bool
    last_updated: Optional[datetime] = None
    reason: Optional[str] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "marketPrice": self.market_price,
            "minPrice": self.min_price,
            "maxPrice": self.max_price,
            "proposedPrice": self.proposed_price,
            "variety": self.variety,
            "grade": self.grade,
            "isStale": self.is_stale,
            "lastUpdated": _iso(self.last_updated),
            "reason": self.reason,
        }
