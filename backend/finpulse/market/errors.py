"""Failures raised inside provider adapters.

None of these ever reach a consumer of the feed: adapters translate them into
a ``FetchStatus`` and serve fallback data instead.
"""


class MarketDataError(Exception):
    """Base class for upstream market data failures."""


class UpstreamUnavailable(MarketDataError):
    """Network error, non-2xx response, or timeout."""


class MalformedResponse(MarketDataError):
    """The upstream answered, but not with anything we can use."""
