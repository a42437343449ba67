"""Abstract interfaces for market data adapters and the consumer-facing feed."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from .cache import TTLCache
from .errors import MalformedResponse, UpstreamUnavailable
from .models import Category, FetchResult, MarketSnapshot, Quote


class QuoteAdapter(ABC):
    """Contract for one upstream quote provider.

    An adapter owns one key namespace in the shared TTLCache and, where it has
    one, its own ChangeTracker. fetch() must never raise for upstream problems:
    it returns fallback data (or nothing) tagged with a FetchStatus instead.
    """

    category: Category

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache,
        ttl: float | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._ttl = ttl

    @abstractmethod
    async def fetch(self) -> FetchResult:
        """Produce this cycle's quotes, from cache when fresh."""

    # --- Shared helpers ---

    def _cached(self, key: str) -> Any | None:
        return self._cache.get(key)

    def _store(self, key: str, value: Any) -> Any:
        self._cache.set(key, value, ttl=self._ttl)
        return value

    async def _get(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """GET a URL, mapping every transport or status failure to UpstreamUnavailable."""
        kwargs: dict[str, Any] = {"params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self._client.get(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # Query strings may carry API keys, so only the bare URL is reported
            raise UpstreamUnavailable(f"{url} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{url}: {type(e).__name__}") from e
        return response

    async def _get_json(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        response = await self._get(url, params=params, timeout=timeout)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"{url} did not return JSON") from e


class MarketDataFeed(ABC):
    """Read-only contract consumed by UI and analytics code.

    Usage:
        feed = create_market_feed()
        snapshot = await feed.fetch_snapshot()
        metals = await feed.fetch_category(Category.METALS)
        # ... app shutting down ...
        await feed.close()
    """

    @abstractmethod
    async def fetch_snapshot(self) -> MarketSnapshot:
        """Return the current snapshot. Never raises.

        Total failure of every provider yields empty categories with
        is_live=False.
        """

    async def fetch_category(self, category: Category) -> tuple[Quote, ...]:
        """Quotes of one category, taken from the current snapshot."""
        snapshot = await self.fetch_snapshot()
        return snapshot.quotes_for(category)

    @abstractmethod
    async def close(self) -> None:
        """Release network resources. Safe to call multiple times."""
