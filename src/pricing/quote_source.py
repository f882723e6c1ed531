"""
Quote source contract and HTTP implementation.

The resolver talks to the remote pricing service only through QuoteSource.
HttpQuoteSource speaks the platform's /api/pricing REST endpoints; the
blocking urllib call runs in a worker thread so callers stay on the event
loop.
"""

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .errors import QuoteSourceError

logger = logging.getLogger(__name__)


class QuoteSource(ABC):
    """
    Remote price service used by PriceResolver.

    Implementations return camelCase payload dicts as sent on the wire and
    raise on any failure; the resolver does the wrapping.
    """

    @abstractmethod
    async def fetch_quote(self, variety: str, grade: int) -> Dict[str, Any]:
        """Base quote: basePrice, lastUpdated, isActive."""

    @abstractmethod
    async def fetch_seasonal_quote(self, variety: str, grade: int, month: int) -> Dict[str, Any]:
        """Seasonal quote: basePrice, seasonalPrice, multiplier, lastUpdated."""

    @abstractmethod
    async def fetch_all_quotes(self) -> List[Dict[str, Any]]:
        """Every (variety, grade) quote in one call."""

    @abstractmethod
    async def fetch_seasonal_multipliers(self) -> Dict[int, float]:
        """Month (1-12) to seasonal multiplier."""

    @abstractmethod
    async def compute_revenue(
        self,
        grove_token: str,
        variety: str,
        grade: int,
        yield_kg: float,
        harvest_month: int,
    ) -> Dict[str, Any]:
        """Projected revenue with breakdown and lastUpdated."""

    @abstractmethod
    async def validate_price(self, variety: str, grade: int, proposed_price: float) -> Dict[str, Any]:
        """Server-side band check: isValid, marketPrice, minPrice, maxPrice."""


class HttpQuoteSource(QuoteSource):
    """QuoteSource backed by the platform pricing API."""

    DEFAULT_TIMEOUT_SECONDS = 60

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            base_url: API root, e.g. http://localhost:3001
            timeout_seconds: Per-request transport timeout
            headers: Extra headers sent with every request
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {"Content-Type": "application/json", **(headers or {})}

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _request_sync(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, headers=self.headers, method=method)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as response:
                payload = response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            raise QuoteSourceError(self._error_message(e), status=e.code) from e
        except urllib.error.URLError as e:
            raise QuoteSourceError(f"Connection failed: {e.reason}") from e

        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError as e:
            raise QuoteSourceError(f"Invalid JSON from {path}: {e}") from e

        return self._unwrap(parsed, path)

    @staticmethod
    def _error_message(error: urllib.error.HTTPError) -> str:
        try:
            body = json.loads(error.read().decode("utf-8"))
        except (ValueError, UnicodeDecodeError, OSError):
            return str(error.reason)
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or error.reason)
        return str(error.reason)

    @staticmethod
    def _unwrap(payload: Any, path: str) -> Any:
        """Strip the {success, data} envelope used by the pricing API."""
        if isinstance(payload, dict) and "success" in payload:
            if not payload.get("success"):
                raise QuoteSourceError(
                    str(payload.get("error") or payload.get("message") or f"Request to {path} failed")
                )
            return payload.get("data", {})
        return payload

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug(f"{method} {path}")
        return await asyncio.to_thread(self._request_sync, method, path, body)

    # -------------------------------------------------------------------------
    # QuoteSource API
    # -------------------------------------------------------------------------

    async def fetch_quote(self, variety: str, grade: int) -> Dict[str, Any]:
        query = urllib.parse.urlencode({"variety": variety, "grade": grade})
        return await self._request("GET", f"/api/pricing/coffee-prices?{query}")

    async def fetch_seasonal_quote(self, variety: str, grade: int, month: int) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/pricing/seasonal-price",
            {"variety": variety, "grade": grade, "month": month},
        )

    async def fetch_all_quotes(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/api/pricing/all-varieties")
        return flatten_variety_table(data)

    async def fetch_seasonal_multipliers(self) -> Dict[int, float]:
        data = await self._request("GET", "/api/pricing/seasonal-multipliers")
        if isinstance(data, dict) and "seasonalMultipliers" in data:
            data = data["seasonalMultipliers"]
        return {int(month): float(value) for month, value in data.items()}

    async def compute_revenue(
        self,
        grove_token: str,
        variety: str,
        grade: int,
        yield_kg: float,
        harvest_month: int,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/pricing/projected-revenue",
            {
                "groveTokenAddress": grove_token,
                "variety": variety,
                "grade": grade,
                "expectedYieldKg": yield_kg,
                "harvestMonth": harvest_month,
            },
        )

    async def validate_price(self, variety: str, grade: int, proposed_price: float) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/pricing/validate-price",
            {"variety": variety, "grade": grade, "proposedPrice": proposed_price},
        )


def flatten_variety_table(data: Any) -> List[Dict[str, Any]]:
    """
    Normalize the all-varieties payload into a flat list of quotes.

    The API returns either a flat list of quotes or
    {"varieties": [{"variety", "grades": [{"grade", "price"}]}], "lastUpdated"}.
    Items without their own lastUpdated inherit the envelope's.
    """
    if isinstance(data, list):
        return data

    if not isinstance(data, dict):
        raise QuoteSourceError(f"Unexpected all-varieties payload: {type(data).__name__}")

    envelope_updated = data.get("lastUpdated")
    quotes: List[Dict[str, Any]] = []

    for entry in data.get("varieties", []):
        variety = entry.get("variety")
        for grade_entry in entry.get("grades", []):
            quotes.append({
                "variety": variety,
                "grade": grade_entry.get("grade"),
                "basePrice": grade_entry.get("basePrice", grade_entry.get("price")),
                "lastUpdated": grade_entry.get("lastUpdated", envelope_updated),
                "isActive": grade_entry.get("isActive", True),
            })

    return quotes
