"""
Tests for HttpQuoteSource request building and payload normalization.
"""

import io
import json
import urllib.error

import pytest
from unittest.mock import MagicMock, patch

from src.pricing.errors import PriceFetchError, QuoteSourceError
from src.pricing.price_resolver import PriceResolver
from src.pricing.quote_source import HttpQuoteSource, flatten_variety_table

from tests.stubs import NOW, FakeClock


URLOPEN = "src.pricing.quote_source.urllib.request.urlopen"


def json_response(payload):
    response = MagicMock()
    response.read.return_value = json.dumps(payload).encode("utf-8")
    response.status = 200
    context = MagicMock()
    context.__enter__.return_value = response
    context.__exit__.return_value = False
    return context


def http_error(code, payload):
    return urllib.error.HTTPError(
        "http://pricing.test/api", code, "Bad Request", {}, io.BytesIO(json.dumps(payload).encode("utf-8"))
    )


@pytest.fixture
def http_source():
    return HttpQuoteSource("http://pricing.test/", timeout_seconds=5)


class TestHttpQuoteSource:
    """Test the REST transport."""

    @pytest.mark.asyncio
    async def test_fetch_quote_builds_query(self, http_source):
        payload = {"success": True, "data": {"basePrice": 4.5, "lastUpdated": NOW.isoformat(), "isActive": True}}
        with patch(URLOPEN, return_value=json_response(payload)) as mock_open:
            data = await http_source.fetch_quote("ARABICA", 5)

        request = mock_open.call_args[0][0]
        assert request.full_url == "http://pricing.test/api/pricing/coffee-prices?variety=ARABICA&grade=5"
        assert request.get_method() == "GET"
        assert mock_open.call_args[1]["timeout"] == 5
        assert data["basePrice"] == 4.5

    @pytest.mark.asyncio
    async def test_projected_revenue_posts_body(self, http_source):
        payload = {"success": True, "data": {"projectedRevenue": 5850.0}}
        with patch(URLOPEN, return_value=json_response(payload)) as mock_open:
            await http_source.compute_revenue("0xgrove", "ARABICA", 7, 1000.0, 6)

        request = mock_open.call_args[0][0]
        assert request.get_method() == "POST"
        assert request.full_url.endswith("/api/pricing/projected-revenue")
        assert json.loads(request.data) == {
            "groveTokenAddress": "0xgrove",
            "variety": "ARABICA",
            "grade": 7,
            "expectedYieldKg": 1000.0,
            "harvestMonth": 6,
        }

    @pytest.mark.asyncio
    async def test_seasonal_multipliers_keys_become_ints(self, http_source):
        payload = {"success": True, "data": {"seasonalMultipliers": {"1": 0.9, "6": 1.3}, "lastUpdated": "x"}}
        with patch(URLOPEN, return_value=json_response(payload)):
            multipliers = await http_source.fetch_seasonal_multipliers()
        assert multipliers == {1: 0.9, 6: 1.3}

    @pytest.mark.asyncio
    async def test_http_error_carries_server_message(self, http_source):
        with patch(URLOPEN, side_effect=http_error(400, {"error": "variety, grade, and month are required"})):
            with pytest.raises(QuoteSourceError) as exc_info:
                await http_source.fetch_seasonal_quote("ARABICA", 5, 6)

        assert exc_info.value.status == 400
        assert "variety, grade, and month are required" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error(self, http_source):
        with patch(URLOPEN, side_effect=urllib.error.URLError("refused")):
            with pytest.raises(QuoteSourceError, match="Connection failed"):
                await http_source.fetch_quote("ARABICA", 5)

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope(self, http_source):
        payload = {"success": False, "error": "Price oracle paused"}
        with patch(URLOPEN, return_value=json_response(payload)):
            with pytest.raises(QuoteSourceError, match="Price oracle paused"):
                await http_source.validate_price("ARABICA", 5, 4.0)

    @pytest.mark.asyncio
    async def test_resolver_wraps_transport_errors(self, http_source):
        resolver = PriceResolver(http_source, clock=FakeClock())
        with patch(URLOPEN, side_effect=urllib.error.URLError("refused")):
            with pytest.raises(PriceFetchError) as exc_info:
                await resolver.get_quote("arabica", 5)

        assert isinstance(exc_info.value.cause, QuoteSourceError)
        assert exc_info.value.variety == "ARABICA"

    @pytest.mark.asyncio
    async def test_all_varieties_through_resolver(self, http_source):
        payload = {
            "success": True,
            "data": {
                "varieties": [
                    {"variety": "ARABICA", "grades": [{"grade": 1, "price": 2.5}, {"grade": 2, "price": 2.85}]},
                    {"variety": "TYPICA", "grades": [{"grade": 1, "price": 3.2}]},
                ],
                "lastUpdated": NOW.isoformat(),
            },
        }
        resolver = PriceResolver(http_source, clock=FakeClock())
        with patch(URLOPEN, return_value=json_response(payload)):
            quotes = await resolver.get_all_quotes()

        assert [(q.variety, q.grade, q.base_price) for q in quotes] == [
            ("ARABICA", 1, 2.5), ("ARABICA", 2, 2.85), ("TYPICA", 1, 3.2),
        ]
        assert all(not q.is_stale for q in quotes)


class TestFlattenVarietyTable:
    """Test normalization of the all-varieties payload."""

    def test_flat_list_passthrough(self):
        items = [{"variety": "ARABICA", "grade": 1, "basePrice": 2.5}]
        assert flatten_variety_table(items) is items

    def test_item_timestamp_wins_over_envelope(self):
        data = {
            "varieties": [{"variety": "ROBUSTA", "grades": [{"grade": 3, "price": 2.0, "lastUpdated": "a"}]}],
            "lastUpdated": "b",
        }
        assert flatten_variety_table(data)[0]["lastUpdated"] == "a"

    def test_rejects_unexpected_payload(self):
        with pytest.raises(QuoteSourceError):
            flatten_variety_table("nope")
