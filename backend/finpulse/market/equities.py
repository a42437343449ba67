"""Equity quotes: US large-caps from Finnhub plus KASE shares scraped from kase.kz."""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Iterable

import httpx

from .cache import TTLCache
from .errors import MarketDataError, UpstreamUnavailable
from .interface import QuoteAdapter
from .models import Category, FetchResult, FetchStatus, Quote
from .watchlists import (
    FOREIGN_EQUITIES,
    LOCAL_CURRENCY,
    LOCAL_EQUITIES,
    LOCAL_EQUITY_SEEDS,
    Instrument,
)

logger = logging.getLogger(__name__)

FINNHUB_QUOTE_URL = "https://finnhub.io/api/v1/quote"
CORS_PROXY_URL = "https://api.allorigins.win/raw"
LOCAL_MARKET_PAGE_URL = "https://kase.kz/ru/shares/"

REQUEST_PACING = 0.1  # seconds between Finnhub calls; free tier allows 60/min
SCRAPE_TIMEOUT = 15.0  # hard deadline for the proxied KASE page

_TAG_RE = re.compile(r"<[^>]*>")
# "401,88", "1 471.95", "23 999,99" (space or nbsp as thousands separator)
_PRICE_RE = re.compile(r"\d+(?:[ \u00a0]\d{3})*(?:[.,]\d+)?")
_PERCENT_RE = re.compile(r"([+-]?\d+(?:[.,]\d+)?)\s*%")


def _to_number(token: str) -> float:
    return float(token.replace(" ", "").replace("\u00a0", "").replace(",", "."))


def _as_float(value: object) -> float | None:
    """Coerce a JSON scalar to a finite float, or None if it is missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_local_market_html(html: str, instruments: Iterable[Instrument]) -> dict[str, Quote]:
    """Extract KASE quotes from the shares page, line by line.

    For each line mentioning a symbol, the first price-like number after the
    symbol is its price and an optional ``N%`` token is its daily change.
    Symbols that cannot be found are simply absent from the result.
    """
    wanted = {inst.symbol: inst for inst in instruments}
    patterns = {symbol: re.compile(rf"\b{re.escape(symbol)}\b") for symbol in wanted}
    found: dict[str, Quote] = {}

    for line in html.splitlines():
        if len(found) == len(wanted):
            break
        text = _TAG_RE.sub(" ", line).replace("&nbsp;", " ")
        for symbol, pattern in patterns.items():
            if symbol in found:
                continue
            match = pattern.search(text)
            if match is None:
                continue
            rest = text[match.end():]
            price_match = _PRICE_RE.search(rest)
            if price_match is None:
                continue
            price = _to_number(price_match.group(0))
            if price <= 0:
                continue
            percent_match = _PERCENT_RE.search(rest)
            change_percent = _to_number(percent_match.group(1)) if percent_match else 0.0
            found[symbol] = Quote(
                symbol=symbol,
                name=wanted[symbol].name,
                price=round(price, 2),
                change=round(price * change_percent / 100, 2),
                change_percent=round(change_percent, 2),
                currency=LOCAL_CURRENCY,
            )
    return found


def _seed_quotes(
    instruments: Iterable[Instrument],
    seeds: dict[str, tuple[float, float, float]],
) -> tuple[Quote, ...]:
    quotes = []
    for inst in instruments:
        if inst.symbol not in seeds:
            continue
        price, change, change_percent = seeds[inst.symbol]
        quotes.append(
            Quote(
                symbol=inst.symbol,
                name=inst.name,
                price=price,
                change=change,
                change_percent=change_percent,
                currency=LOCAL_CURRENCY,
            )
        )
    return tuple(quotes)


class EquityAdapter(QuoteAdapter):
    """Foreign equities from Finnhub and local-market equities from a KASE scrape.

    Foreign symbols are requested one at a time (Finnhub has no batch quote
    endpoint) with a pacing delay between calls. A symbol with a missing or
    zero price is left out for this cycle.

    The local market has no usable API, so its shares page is fetched through
    a CORS relay under a hard deadline. On timeout or a failed parse the last
    successfully scraped list is served (the seed list until the first
    success); symbols missing from a parse keep their previous quote.
    """

    category = Category.EQUITIES
    CACHE_KEY = "equities:all"
    LOCAL_CACHE_KEY = "equities:local"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache,
        api_key: str | None,
        foreign: Iterable[Instrument] = FOREIGN_EQUITIES,
        local: Iterable[Instrument] = LOCAL_EQUITIES,
        local_seeds: dict[str, tuple[float, float, float]] = LOCAL_EQUITY_SEEDS,
        pacing: float = REQUEST_PACING,
        scrape_timeout: float = SCRAPE_TIMEOUT,
        quote_url: str = FINNHUB_QUOTE_URL,
        proxy_url: str = CORS_PROXY_URL,
        page_url: str = LOCAL_MARKET_PAGE_URL,
        ttl: float | None = None,
    ) -> None:
        super().__init__(client, cache, ttl)
        self._api_key = api_key or None
        self._foreign = tuple(foreign)
        self._local = tuple(local)
        self._pacing = pacing
        self._scrape_timeout = scrape_timeout
        self._quote_url = quote_url
        self._proxy_url = proxy_url
        self._page_url = page_url
        self._last_known_local = _seed_quotes(self._local, local_seeds)

    @property
    def is_configured(self) -> bool:
        return self._api_key is not None

    @property
    def last_known_local(self) -> tuple[Quote, ...]:
        """Most recent local-market list, scraped or seeded."""
        return self._last_known_local

    async def fetch(self) -> FetchResult:
        cached = self._cached(self.CACHE_KEY)
        if cached is not None:
            return cached

        foreign = await self._fetch_foreign()
        local, local_status = await self._fetch_local()

        quotes = tuple(foreign) + local
        if foreign or local_status is FetchStatus.LIVE:
            logger.debug(
                "Equities: %d foreign, %d local (%s)",
                len(foreign),
                len(local),
                local_status.value,
            )
            return self._store(self.CACHE_KEY, FetchResult(self.category, quotes))

        logger.warning("Equities: no live data this cycle, serving %d stored quotes", len(quotes))
        return FetchResult(self.category, quotes, status=local_status, fallback=True)

    # --- Foreign (Finnhub) ---

    async def _fetch_foreign(self) -> list[Quote]:
        if self._api_key is None:
            return []

        quotes: list[Quote] = []
        called_upstream = False
        for inst in self._foreign:
            key = f"equities:{inst.symbol}"
            cached = self._cached(key)
            if cached is not None:
                quotes.append(cached)
                continue

            if called_upstream and self._pacing > 0:
                await asyncio.sleep(self._pacing)
            called_upstream = True

            quote = await self._fetch_foreign_quote(inst)
            if quote is not None:
                quotes.append(self._store(key, quote))
        return quotes

    async def _fetch_foreign_quote(self, inst: Instrument) -> Quote | None:
        try:
            data = await self._get_json(
                self._quote_url,
                params={"symbol": inst.symbol, "token": self._api_key},
            )
        except MarketDataError as e:
            logger.warning("Finnhub quote for %s failed: %s", inst.symbol, e)
            return None

        if not isinstance(data, dict):
            logger.warning("Finnhub quote for %s: unexpected payload %r", inst.symbol, type(data))
            return None

        price = _as_float(data.get("c"))
        if not price or price <= 0:
            logger.warning("Finnhub has no price for %s this cycle", inst.symbol)
            return None

        return Quote(
            symbol=inst.shown_as,
            name=inst.name,
            price=round(price, 2),
            change=round(_as_float(data.get("d")) or 0.0, 2),
            change_percent=round(_as_float(data.get("dp")) or 0.0, 2),
            currency="USD",
        )

    # --- Local market (KASE scrape) ---

    async def _fetch_local(self) -> tuple[tuple[Quote, ...], FetchStatus]:
        cached = self._cached(self.LOCAL_CACHE_KEY)
        if cached is not None:
            return cached, FetchStatus.LIVE

        try:
            # wait_for cancels the request itself when the deadline passes
            response = await asyncio.wait_for(
                self._get(
                    self._proxy_url,
                    params={"url": self._page_url},
                    timeout=self._scrape_timeout,
                ),
                timeout=self._scrape_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Local market scrape timed out after %.1fs, using last known quotes",
                self._scrape_timeout,
            )
            return self._last_known_local, FetchStatus.UNAVAILABLE
        except UpstreamUnavailable as e:
            logger.warning("Local market scrape failed (%s), using last known quotes", e)
            return self._last_known_local, FetchStatus.UNAVAILABLE

        parsed = parse_local_market_html(response.text, self._local)
        if not parsed:
            logger.warning("Local market page had no recognizable quotes, using last known quotes")
            return self._last_known_local, FetchStatus.MALFORMED

        previous = {q.symbol: q for q in self._last_known_local}
        merged = tuple(
            parsed.get(inst.symbol) or previous[inst.symbol]
            for inst in self._local
            if inst.symbol in parsed or inst.symbol in previous
        )
        if len(parsed) < len(self._local):
            logger.info("Local market: parsed %d/%d symbols", len(parsed), len(self._local))

        self._last_known_local = merged
        return self._store(self.LOCAL_CACHE_KEY, merged), FetchStatus.LIVE
