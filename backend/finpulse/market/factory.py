"""Factory for the market data feed."""

from __future__ import annotations

import logging
import os

import httpx

from .aggregator import SNAPSHOT_TTL, MarketAggregator
from .cache import DEFAULT_TTL, TTLCache
from .crypto import CryptoAdapter
from .currencies import CurrencyAdapter
from .equities import EquityAdapter
from .metals import MetalAdapter

logger = logging.getLogger(__name__)

EQUITIES_KEY_VAR = "FINNHUB_API_KEY"
METALS_KEY_VAR = "METALPRICE_API_KEY"

HTTP_TIMEOUT = 10.0


def read_api_key(var: str) -> str | None:
    """An API key from the environment, or None if unset, blank, or a placeholder.

    Placeholders look like ``your_finnhub_api_key_here`` (from .env templates).
    """
    value = os.environ.get(var, "").strip()
    if not value or (value.startswith("your_") and value.endswith("_here")):
        return None
    return value


def provider_configuration() -> dict[str, bool]:
    """Which keyed providers will make live calls."""
    return {
        "equities": read_api_key(EQUITIES_KEY_VAR) is not None,
        "metals": read_api_key(METALS_KEY_VAR) is not None,
    }


def create_market_feed(
    client: httpx.AsyncClient | None = None,
    cache: TTLCache | None = None,
    source_ttl: float = DEFAULT_TTL,
    snapshot_ttl: float = SNAPSHOT_TTL,
) -> MarketAggregator:
    """Wire all four adapters into an aggregator, configured from the environment.

    - FINNHUB_API_KEY set → live US equities; otherwise only KASE equities
    - METALPRICE_API_KEY set → live metals; otherwise demo metal prices

    A client passed in stays owned by the caller; otherwise the feed creates
    one and closes it in close().
    """
    owned_client = None
    if client is None:
        client = owned_client = httpx.AsyncClient(timeout=HTTP_TIMEOUT, follow_redirects=True)
    if cache is None:
        cache = TTLCache(ttl=source_ttl)

    equities_key = read_api_key(EQUITIES_KEY_VAR)
    metals_key = read_api_key(METALS_KEY_VAR)
    logger.info("Equities: %s", "Finnhub + KASE" if equities_key else "KASE only (no Finnhub key)")
    logger.info("Metals: %s", "MetalpriceAPI" if metals_key else "demo prices (no MetalpriceAPI key)")

    currencies = CurrencyAdapter(client, cache, ttl=source_ttl)
    return MarketAggregator(
        equities=EquityAdapter(client, cache, api_key=equities_key, ttl=source_ttl),
        crypto=CryptoAdapter(client, cache, ttl=source_ttl),
        metals=MetalAdapter(
            client,
            cache,
            api_key=metals_key,
            local_rate=lambda: currencies.latest_rate("USD"),
            ttl=source_ttl,
        ),
        currencies=currencies,
        cache=cache,
        ttl=snapshot_ttl,
        client=owned_client,
    )
