"""Fiat exchange rates against the local currency from open.er-api.com."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

import httpx

from .cache import TTLCache
from .errors import MalformedResponse, UpstreamUnavailable
from .interface import QuoteAdapter
from .models import Category, FetchResult, FetchStatus, Quote
from .tracker import ChangeTracker
from .watchlists import (
    CURRENCY_FALLBACK_RATES,
    FOREIGN_CURRENCIES,
    LOCAL_CURRENCY,
    Instrument,
)

logger = logging.getLogger(__name__)

EXCHANGE_RATE_URL = "https://open.er-api.com/v6/latest/{base}"

MAX_CURRENCY_SWING = 10.0  # percent


class CurrencyAdapter(QuoteAdapter):
    """Price of one foreign currency unit in the local currency.

    The API is queried with the local currency as base, so it answers in
    foreign units per local unit; each rate is inverted before publishing.
    Change is tracked per currency like the metal adapter does. On failure the
    static fallback table is served with zero change.
    """

    category = Category.CURRENCIES
    CACHE_KEY = "currencies:all"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache,
        currencies: Iterable[Instrument] = FOREIGN_CURRENCIES,
        base: str = LOCAL_CURRENCY,
        fallback_rates: dict[str, float] = CURRENCY_FALLBACK_RATES,
        tracker: ChangeTracker | None = None,
        url: str = EXCHANGE_RATE_URL,
        ttl: float | None = None,
    ) -> None:
        super().__init__(client, cache, ttl)
        self._currencies = tuple(currencies)
        self._base = base
        self._fallback_rates = fallback_rates
        self._tracker = tracker if tracker is not None else ChangeTracker(MAX_CURRENCY_SWING)
        self._url = url.format(base=base)

    @property
    def tracker(self) -> ChangeTracker:
        return self._tracker

    def latest_rate(self, code: str) -> float | None:
        """Last live rate for a currency (local units per 1 unit), or None."""
        return self._tracker.previous(code)

    async def fetch(self) -> FetchResult:
        cached = self._cached(self.CACHE_KEY)
        if cached is not None:
            return cached

        try:
            payload = await self._get_json(self._url)
            rates = self._extract_rates(payload)
        except UpstreamUnavailable as e:
            logger.warning("Exchange rate API failed (%s), serving fallback rates", e)
            return self._fallback(FetchStatus.UNAVAILABLE)
        except MalformedResponse as e:
            logger.warning("Exchange rate response unusable (%s), serving fallback rates", e)
            return self._fallback(FetchStatus.MALFORMED)

        quotes = []
        for currency in self._currencies:
            if currency.symbol not in rates:
                continue
            rate = rates[currency.symbol]
            delta = self._tracker.observe(currency.symbol, rate)
            quotes.append(self._quote(currency, rate, delta.change, delta.change_percent))

        return self._store(self.CACHE_KEY, FetchResult(self.category, tuple(quotes)))

    def _extract_rates(self, payload: Any) -> dict[str, float]:
        """Local units per foreign unit, for every watched currency present."""
        if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
            raise MalformedResponse("response has no rates object")

        rates: dict[str, float] = {}
        for currency in self._currencies:
            value = payload["rates"].get(currency.symbol)
            try:
                foreign_per_local = float(value)
            except (TypeError, ValueError):
                logger.warning("No usable %s rate in response", currency.symbol)
                continue
            if not math.isfinite(foreign_per_local) or foreign_per_local <= 0:
                logger.warning("Unusable %s rate in response: %s", currency.symbol, value)
                continue
            rates[currency.symbol] = 1 / foreign_per_local

        if not rates:
            raise MalformedResponse("no watched currencies in rates")
        return rates

    def _fallback(self, status: FetchStatus) -> FetchResult:
        quotes = tuple(
            self._quote(currency, self._fallback_rates[currency.symbol], 0.0, 0.0)
            for currency in self._currencies
            if currency.symbol in self._fallback_rates
        )
        return FetchResult(self.category, quotes, status=status, fallback=True)

    def _quote(self, currency: Instrument, rate: float, change: float, change_percent: float) -> Quote:
        # Four places so sub-unit currencies (UZS ~ 0.038) stay readable
        return Quote(
            symbol=currency.shown_as,
            name=currency.name,
            price=round(rate, 4),
            change=round(change, 4),
            change_percent=round(change_percent, 2),
            currency=self._base,
        )
