"""Precious-metal spot prices from MetalpriceAPI."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from typing import Any

import httpx
import numpy as np

from .cache import TTLCache
from .errors import MalformedResponse, UpstreamUnavailable
from .interface import QuoteAdapter
from .models import Category, FetchResult, FetchStatus, Quote
from .tracker import ChangeTracker
from .watchlists import (
    LOCAL_CURRENCY,
    METAL_SEED_PRICES,
    PER_GRAM_METALS,
    PRECIOUS_METALS,
    USD_TO_LOCAL_FALLBACK,
    Instrument,
)

logger = logging.getLogger(__name__)

METALPRICE_LATEST_URL = "https://api.metalpriceapi.com/v1/latest"

GRAMS_PER_TROY_OUNCE = 31.1035
MAX_METAL_SWING = 15.0  # percent; larger moves are unit mix-ups, not markets
FALLBACK_JITTER = 0.01  # +/-1% around the seed price


def resolve_ounce_price(raw_rate: float) -> float:
    """Turn a MetalpriceAPI rate into USD per troy ounce.

    The API answers with either ounces per dollar (XAU ~ 0.00049) or dollars
    per ounce (XAU ~ 2040) and does not say which. Every precious metal costs
    more than $1/oz, so whichever of the rate and its reciprocal exceeds 1 is
    taken as the price. This is a guess about the upstream, not a contract.
    """
    if not math.isfinite(raw_rate) or raw_rate <= 0:
        raise ValueError(f"rate must be positive and finite, got {raw_rate}")
    inverted = 1 / raw_rate
    return inverted if inverted > 1 else raw_rate


class MetalAdapter(QuoteAdapter):
    """Spot prices in USD/oz, plus a local-currency per-gram quote for gold and silver.

    MetalpriceAPI reports only a rate, so change is computed against the
    previous cycle by a ChangeTracker. Without an API key, or when the call
    fails, demo prices jittered around fixed seeds are served and flagged as
    fallback; they never touch the tracker.

    ``local_rate`` supplies local-currency units per USD (normally the latest
    rate seen by the currency adapter); when it has nothing, a fixed rate is
    used.
    """

    category = Category.METALS
    CACHE_KEY = "metals:all"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache,
        api_key: str | None,
        metals: Iterable[Instrument] = PRECIOUS_METALS,
        per_gram: Iterable[str] = PER_GRAM_METALS,
        seed_prices: dict[str, float] = METAL_SEED_PRICES,
        local_rate: Callable[[], float | None] | None = None,
        tracker: ChangeTracker | None = None,
        rng: np.random.Generator | None = None,
        url: str = METALPRICE_LATEST_URL,
        ttl: float | None = None,
    ) -> None:
        super().__init__(client, cache, ttl)
        self._api_key = api_key or None
        self._metals = tuple(metals)
        self._per_gram = frozenset(per_gram)
        self._seed_prices = seed_prices
        self._local_rate = local_rate
        self._tracker = tracker if tracker is not None else ChangeTracker(MAX_METAL_SWING)
        self._rng = rng if rng is not None else np.random.default_rng()
        self._url = url

    @property
    def is_configured(self) -> bool:
        return self._api_key is not None

    @property
    def tracker(self) -> ChangeTracker:
        return self._tracker

    async def fetch(self) -> FetchResult:
        cached = self._cached(self.CACHE_KEY)
        if cached is not None:
            return cached

        if self._api_key is None:
            logger.debug("MetalpriceAPI key not configured, serving demo prices")
            return self._fallback(FetchStatus.UNCONFIGURED)

        try:
            payload = await self._get_json(
                self._url,
                params={
                    "api_key": self._api_key,
                    "base": "USD",
                    "currencies": ",".join(m.symbol for m in self._metals),
                },
            )
            prices = self._extract_prices(payload)
        except UpstreamUnavailable as e:
            logger.warning("MetalpriceAPI failed (%s), serving demo prices", e)
            return self._fallback(FetchStatus.UNAVAILABLE)
        except MalformedResponse as e:
            logger.warning("MetalpriceAPI response unusable (%s), serving demo prices", e)
            return self._fallback(FetchStatus.MALFORMED)

        rate = self._usd_to_local()
        quotes: list[Quote] = []
        for metal in self._metals:
            if metal.symbol not in prices:
                continue
            price = prices[metal.symbol]
            delta = self._tracker.observe(metal.symbol, price)
            quotes.extend(self._quotes_for(metal, price, delta.change, delta.change_percent, rate))

        return self._store(self.CACHE_KEY, FetchResult(self.category, tuple(quotes)))

    def _extract_prices(self, payload: Any) -> dict[str, float]:
        """USD/oz per watched metal. Nothing is recorded until all of it parses."""
        if not isinstance(payload, dict) or not payload.get("success"):
            raise MalformedResponse("response not marked successful")
        rates = payload.get("rates")
        if not isinstance(rates, dict):
            raise MalformedResponse("response has no rates object")

        watched = {m.symbol for m in self._metals}
        prices: dict[str, float] = {}
        for key, value in rates.items():
            # Rates may be keyed "XAU" or "USDXAU"; the first one seen wins
            symbol = key[3:] if key.startswith("USD") and len(key) > 3 else key
            if symbol not in watched or symbol in prices:
                continue
            try:
                prices[symbol] = resolve_ounce_price(float(value))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping metal rate %s=%r: %s", key, value, e)

        if not prices:
            raise MalformedResponse("no watched metals in rates")
        return prices

    def _fallback(self, status: FetchStatus) -> FetchResult:
        metals = [m for m in self._metals if m.symbol in self._seed_prices]
        jitter = self._rng.uniform(-FALLBACK_JITTER, FALLBACK_JITTER, size=len(metals))
        rate = self._usd_to_local()

        quotes: list[Quote] = []
        for metal, move in zip(metals, jitter):
            seed = self._seed_prices[metal.symbol]
            price = seed * (1 + float(move))
            quotes.extend(self._quotes_for(metal, price, price - seed, float(move) * 100, rate))
        return FetchResult(self.category, tuple(quotes), status=status, fallback=True)

    def _quotes_for(
        self,
        metal: Instrument,
        price: float,
        change: float,
        change_percent: float,
        rate: float,
    ) -> list[Quote]:
        quotes = [
            Quote(
                symbol=metal.symbol,
                name=metal.name,
                price=round(price, 2),
                change=round(change, 2),
                change_percent=round(change_percent, 2),
                unit="oz",
                currency="USD",
            )
        ]
        if metal.symbol in self._per_gram:
            # Whole local-currency units per gram
            quotes.append(
                Quote(
                    symbol=f"{metal.symbol}/{LOCAL_CURRENCY}",
                    name=f"{metal.name} ({LOCAL_CURRENCY})",
                    price=float(round(price / GRAMS_PER_TROY_OUNCE * rate)),
                    change=float(round(change / GRAMS_PER_TROY_OUNCE * rate)),
                    change_percent=round(change_percent, 2),
                    unit="g",
                    currency=LOCAL_CURRENCY,
                )
            )
        return quotes

    def _usd_to_local(self) -> float:
        rate = self._local_rate() if self._local_rate is not None else None
        if not rate or rate <= 0:
            return USD_TO_LOCAL_FALLBACK
        return rate
