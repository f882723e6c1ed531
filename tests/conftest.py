"""
Shared pytest fixtures for coffee price oracle tests.
"""

import pytest

from src.pricing.price_resolver import PriceResolver

from tests.stubs import FakeClock, StubQuoteSource


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source(clock) -> StubQuoteSource:
    return StubQuoteSource(clock)


@pytest.fixture
def resolver(source, clock) -> PriceResolver:
    return PriceResolver(source, clock=clock)
