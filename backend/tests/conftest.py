"""Pytest configuration and fixtures."""

import pytest

from finpulse.market.cache import TTLCache


class FakeClock:
    """Manually advanced stand-in for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """A 60s TTL cache driven by the fake clock."""
    return TTLCache(ttl=60.0, clock=clock)
