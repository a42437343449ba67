"""Crypto quotes from the Binance public 24h ticker endpoint."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable
from typing import Any

import httpx

from .cache import TTLCache
from .errors import MalformedResponse, UpstreamUnavailable
from .interface import QuoteAdapter
from .models import Category, FetchResult, FetchStatus, Quote
from .watchlists import CRYPTO_PAIRS, Instrument

logger = logging.getLogger(__name__)

BINANCE_TICKER_URL = "https://api.binance.com/api/v3/ticker/24hr"


class CryptoAdapter(QuoteAdapter):
    """Spot pairs quoted against USDT, one batched call per cycle.

    Binance reports 24h absolute and percent change itself, so no change
    tracking is done here. On failure nothing is fabricated: the result is
    empty, which the aggregator reads as "crypto temporarily unavailable".
    """

    category = Category.CRYPTO
    CACHE_KEY = "crypto:all"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache,
        pairs: Iterable[Instrument] = CRYPTO_PAIRS,
        url: str = BINANCE_TICKER_URL,
        ttl: float | None = None,
    ) -> None:
        super().__init__(client, cache, ttl)
        self._pairs = tuple(pairs)
        self._url = url

    async def fetch(self) -> FetchResult:
        cached = self._cached(self.CACHE_KEY)
        if cached is not None:
            return cached

        symbols = json.dumps([p.symbol for p in self._pairs], separators=(",", ":"))
        try:
            payload = await self._get_json(self._url, params={"symbols": symbols})
            quotes = self._parse(payload)
        except UpstreamUnavailable as e:
            logger.warning("Binance ticker failed: %s", e)
            return FetchResult(self.category, status=FetchStatus.UNAVAILABLE)
        except MalformedResponse as e:
            logger.warning("Binance ticker unusable: %s", e)
            return FetchResult(self.category, status=FetchStatus.MALFORMED)

        logger.debug("Binance: %d/%d pairs", len(quotes), len(self._pairs))
        return self._store(self.CACHE_KEY, FetchResult(self.category, quotes))

    def _parse(self, payload: Any) -> tuple[Quote, ...]:
        if not isinstance(payload, list):
            raise MalformedResponse(f"expected a list of tickers, got {type(payload).__name__}")

        by_symbol = {p.symbol: p for p in self._pairs}
        parsed: dict[str, Quote] = {}
        for ticker in payload:
            if not isinstance(ticker, dict):
                continue
            pair = by_symbol.get(ticker.get("symbol"))
            if pair is None:
                continue
            try:
                price = float(ticker["lastPrice"])
                change = float(ticker["priceChange"])
                change_percent = float(ticker["priceChangePercent"])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping ticker %s: %s", pair.symbol, e)
                continue
            if not all(map(math.isfinite, (price, change, change_percent))):
                logger.warning("Skipping ticker %s: non-finite figures", pair.symbol)
                continue
            if price <= 0:
                logger.warning("Skipping ticker %s: non-positive price %s", pair.symbol, price)
                continue
            # Sub-cent coins (DOGE, TON) keep full precision
            parsed[pair.symbol] = Quote(
                symbol=pair.shown_as,
                name=pair.name,
                price=price,
                change=change,
                change_percent=change_percent,
                currency="USDT",
            )

        if not parsed:
            raise MalformedResponse("no watched pairs in ticker response")
        missing = len(self._pairs) - len(parsed)
        if missing:
            logger.info("Binance: %d watched pairs missing from response", missing)

        # Watch-list order, not response order
        return tuple(parsed[p.symbol] for p in self._pairs if p.symbol in parsed)
