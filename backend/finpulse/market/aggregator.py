"""Fan-out over all provider adapters, merged into one cached snapshot."""

from __future__ import annotations

import asyncio
import logging

import httpx

from .cache import TTLCache
from .interface import MarketDataFeed, QuoteAdapter
from .models import Category, FetchResult, FetchStatus, MarketSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_TTL = 90.0  # seconds; coarser than the per-source entries


class MarketAggregator(MarketDataFeed):
    """MarketDataFeed that runs every adapter concurrently and merges the results.

    The merged snapshot is cached under its own key, so UI polls inside the
    snapshot TTL never reach an adapter. Concurrent callers on a cold cache
    may each run a full cycle; upstream reads are idempotent, so that is
    tolerated rather than locked against.
    """

    CACHE_KEY = "snapshot"

    def __init__(
        self,
        equities: QuoteAdapter,
        crypto: QuoteAdapter,
        metals: QuoteAdapter,
        currencies: QuoteAdapter,
        cache: TTLCache,
        ttl: float = SNAPSHOT_TTL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._adapters: dict[Category, QuoteAdapter] = {
            Category.EQUITIES: equities,
            Category.CRYPTO: crypto,
            Category.METALS: metals,
            Category.CURRENCIES: currencies,
        }
        self._cache = cache
        self._ttl = ttl
        self._client = client  # Owned: closed by close()

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def adapter(self, category: Category) -> QuoteAdapter:
        return self._adapters[category]

    async def fetch_snapshot(self) -> MarketSnapshot:
        cached = self._cache.get(self.CACHE_KEY)
        if cached is not None:
            return cached

        categories = list(self._adapters)
        outcomes = await asyncio.gather(
            *(self._adapters[c].fetch() for c in categories),
            return_exceptions=True,
        )

        results: dict[Category, FetchResult] = {}
        for category, outcome in zip(categories, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "%s adapter raised, publishing the category empty",
                    category.value,
                    exc_info=outcome,
                )
                outcome = FetchResult(category, status=FetchStatus.UNAVAILABLE)
            results[category] = outcome

        snapshot = MarketSnapshot(
            equities=results[Category.EQUITIES].quotes,
            crypto=results[Category.CRYPTO].quotes,
            metals=results[Category.METALS].quotes,
            currencies=results[Category.CURRENCIES].quotes,
            generated_at=self._cache.now_ms(),
            is_live=results[Category.EQUITIES].is_live and results[Category.CRYPTO].is_live,
            statuses={c: r.status for c, r in results.items()},
        )
        logger.info(
            "Market snapshot: live=%s %s",
            snapshot.is_live,
            " ".join(f"{c.value}={len(r.quotes)}/{r.status.value}" for c, r in results.items()),
        )

        self._cache.set(self.CACHE_KEY, snapshot, ttl=self._ttl)
        return snapshot

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Market feed closed")
