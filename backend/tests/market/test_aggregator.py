"""Tests for MarketAggregator."""

import httpx
import numpy as np
import pytest

from finpulse.market.aggregator import MarketAggregator
from finpulse.market.crypto import CryptoAdapter
from finpulse.market.currencies import CurrencyAdapter
from finpulse.market.equities import EquityAdapter
from finpulse.market.interface import QuoteAdapter
from finpulse.market.metals import MetalAdapter
from finpulse.market.models import Category, FetchResult, FetchStatus, Quote, is_snapshot_live
from finpulse.market.watchlists import CRYPTO_PAIRS


class StaticAdapter(QuoteAdapter):
    """Adapter that returns a fixed result (or raises) and counts its calls."""

    def __init__(self, cache, result=None, error=None):
        super().__init__(client=None, cache=cache)
        self.result = result
        self.error = error
        self.calls = 0

    async def fetch(self) -> FetchResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def _live(category: Category, *symbols: str) -> FetchResult:
    return FetchResult(category, tuple(Quote(symbol=s, name=s, price=100.0) for s in symbols))


def _empty(category: Category) -> FetchResult:
    return FetchResult(category, status=FetchStatus.UNAVAILABLE)


def _fallback(category: Category, *symbols: str) -> FetchResult:
    quotes = tuple(Quote(symbol=s, name=s, price=100.0) for s in symbols)
    return FetchResult(category, quotes, status=FetchStatus.UNCONFIGURED, fallback=True)


def _aggregator(cache, equities, crypto, metals, currencies, **kwargs):
    adapters = [
        StaticAdapter(cache, result=r) if isinstance(r, FetchResult) else r
        for r in (equities, crypto, metals, currencies)
    ]
    return MarketAggregator(*adapters, cache=cache, **kwargs), adapters


@pytest.mark.asyncio
class TestMarketAggregator:
    """Unit tests for the fan-out and merge."""

    async def test_merges_all_categories(self, cache):
        """Test every adapter's quotes land in their own category."""
        aggregator, _ = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _live(Category.CRYPTO, "BTC", "ETH"),
            _live(Category.METALS, "XAU"),
            _live(Category.CURRENCIES, "USD/KZT"),
        )
        snapshot = await aggregator.fetch_snapshot()

        assert [q.symbol for q in snapshot.equities] == ["AAPL"]
        assert [q.symbol for q in snapshot.crypto] == ["BTC", "ETH"]
        assert [q.symbol for q in snapshot.metals] == ["XAU"]
        assert [q.symbol for q in snapshot.currencies] == ["USD/KZT"]
        assert snapshot.statuses == {c: FetchStatus.LIVE for c in Category}

    async def test_live_with_equities_and_crypto(self, cache):
        """Metals and currencies on demo data do not affect liveness."""
        aggregator, _ = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _live(Category.CRYPTO, "BTC"),
            _fallback(Category.METALS, "XAU"),
            _fallback(Category.CURRENCIES, "USD/KZT"),
        )
        snapshot = await aggregator.fetch_snapshot()
        assert snapshot.is_live
        assert is_snapshot_live(snapshot)

    async def test_empty_crypto_is_not_live(self, cache):
        """Test a crypto outage makes the snapshot not live."""
        aggregator, _ = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _empty(Category.CRYPTO),
            _live(Category.METALS, "XAU"),
            _live(Category.CURRENCIES, "USD/KZT"),
        )
        snapshot = await aggregator.fetch_snapshot()

        assert not snapshot.is_live
        assert snapshot.crypto == ()
        assert snapshot.statuses[Category.CRYPTO] is FetchStatus.UNAVAILABLE

    async def test_fallback_equities_is_not_live(self, cache):
        """Test seed equities alone make the snapshot not live."""
        aggregator, _ = _aggregator(
            cache,
            _fallback(Category.EQUITIES, "HSBK"),
            _live(Category.CRYPTO, "BTC"),
            _live(Category.METALS, "XAU"),
            _live(Category.CURRENCIES, "USD/KZT"),
        )
        snapshot = await aggregator.fetch_snapshot()

        assert not snapshot.is_live
        assert [q.symbol for q in snapshot.equities] == ["HSBK"]

    async def test_adapter_exception_empties_only_its_category(self, cache):
        """Test an adapter that raises only empties its own category."""
        aggregator, _ = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _live(Category.CRYPTO, "BTC"),
            StaticAdapter(cache, error=RuntimeError("bug")),
            _live(Category.CURRENCIES, "USD/KZT"),
        )
        snapshot = await aggregator.fetch_snapshot()

        assert snapshot.metals == ()
        assert snapshot.statuses[Category.METALS] is FetchStatus.UNAVAILABLE
        assert snapshot.is_live

    async def test_total_failure_never_raises(self, cache):
        """Test every adapter raising still yields an empty snapshot."""
        errors = [StaticAdapter(cache, error=ValueError("boom")) for _ in Category]
        aggregator = MarketAggregator(*errors, cache=cache)
        snapshot = await aggregator.fetch_snapshot()

        assert snapshot.equities == snapshot.crypto == snapshot.metals == snapshot.currencies == ()
        assert not snapshot.is_live

    async def test_snapshot_cached(self, cache):
        """Test a second call within the TTL reuses the snapshot."""
        aggregator, adapters = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _live(Category.CRYPTO, "BTC"),
            _live(Category.METALS, "XAU"),
            _live(Category.CURRENCIES, "USD/KZT"),
        )
        first = await aggregator.fetch_snapshot()
        second = await aggregator.fetch_snapshot()

        assert second is first
        assert [a.calls for a in adapters] == [1, 1, 1, 1]

    async def test_snapshot_ttl(self, cache, clock):
        """The snapshot uses its own TTL, not the cache default."""
        aggregator, adapters = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _live(Category.CRYPTO, "BTC"),
            _live(Category.METALS, "XAU"),
            _live(Category.CURRENCIES, "USD/KZT"),
            ttl=90.0,
        )
        first = await aggregator.fetch_snapshot()
        clock.advance(75)
        assert await aggregator.fetch_snapshot() is first

        clock.advance(20)
        refreshed = await aggregator.fetch_snapshot()
        assert refreshed is not first
        assert adapters[0].calls == 2

    async def test_failed_snapshot_is_cached_too(self, cache):
        """A degraded snapshot is still served for the whole TTL window."""
        aggregator, adapters = _aggregator(
            cache,
            _empty(Category.EQUITIES),
            _empty(Category.CRYPTO),
            _empty(Category.METALS),
            _empty(Category.CURRENCIES),
        )
        await aggregator.fetch_snapshot()
        await aggregator.fetch_snapshot()
        assert adapters[1].calls == 1

    async def test_generated_at_from_cache_clock(self, cache):
        """Test the timestamp comes from the cache clock in milliseconds."""
        aggregator, _ = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _live(Category.CRYPTO, "BTC"),
            _live(Category.METALS, "XAU"),
            _live(Category.CURRENCIES, "USD/KZT"),
        )
        snapshot = await aggregator.fetch_snapshot()
        assert snapshot.generated_at == 1_700_000_000_000

    async def test_fetch_category(self, cache):
        """Test category reads share one cached snapshot."""
        aggregator, adapters = _aggregator(
            cache,
            _live(Category.EQUITIES, "AAPL"),
            _live(Category.CRYPTO, "BTC"),
            _live(Category.METALS, "XAU", "XAG"),
            _live(Category.CURRENCIES, "USD/KZT"),
        )
        metals = await aggregator.fetch_category(Category.METALS)
        crypto = await aggregator.fetch_category(Category.CRYPTO)

        assert [q.symbol for q in metals] == ["XAU", "XAG"]
        assert [q.symbol for q in crypto] == ["BTC"]
        assert adapters[2].calls == 1

    async def test_close_owned_client(self, cache):
        """Test closing releases the owned client."""
        client = httpx.AsyncClient()
        aggregator = MarketAggregator(
            *(StaticAdapter(cache, result=_empty(c)) for c in Category),
            cache=cache,
            client=client,
        )
        await aggregator.close()
        await aggregator.close()
        assert client.is_closed


@pytest.mark.asyncio
class TestEndToEnd:
    """Real adapters against mocked upstreams."""

    @pytest.fixture
    def feed(self, client, cache, foreign_equities, local_equities, local_seeds):
        currencies = CurrencyAdapter(client, cache)
        return MarketAggregator(
            equities=EquityAdapter(
                client,
                cache,
                api_key="finnhub-key",
                foreign=foreign_equities,
                local=local_equities,
                local_seeds=local_seeds,
                pacing=0,
            ),
            crypto=CryptoAdapter(client, cache),
            metals=MetalAdapter(
                client,
                cache,
                api_key="metal-key",
                local_rate=lambda: currencies.latest_rate("USD"),
                rng=np.random.default_rng(0),
            ),
            currencies=currencies,
            cache=cache,
        )

    def _healthy(self, upstream):
        upstream.on("finnhub.io", lambda r: httpx.Response(200, json={"c": 190.5, "d": 1.0, "dp": 0.5}))
        upstream.on(
            "api.allorigins.win",
            lambda r: httpx.Response(200, text="<td>HSBK</td><td>401,88</td><td>+0,20%</td>"),
        )
        upstream.json(
            "api.binance.com",
            [
                {"symbol": p.symbol, "lastPrice": "10.0", "priceChange": "0.1", "priceChangePercent": "1.0"}
                for p in CRYPTO_PAIRS
            ],
        )
        upstream.json("api.metalpriceapi.com", {"success": True, "rates": {"XAU": 0.0005, "XAG": 0.04}})
        upstream.json("open.er-api.com", {"rates": {"USD": 0.002, "EUR": 0.0016}})

    def _broken(self, upstream):
        for host in list(upstream.routes):
            upstream.fail(host)

    async def test_full_cycle(self, upstream, feed):
        """Test a healthy cycle through every real adapter."""
        self._healthy(upstream)
        snapshot = await feed.fetch_snapshot()

        assert snapshot.is_live
        assert [q.symbol for q in snapshot.equities] == ["AAPL", "MSFT", "HSBK", "KSPI"]
        assert len(snapshot.crypto) == len(CRYPTO_PAIRS)
        assert {q.symbol for q in snapshot.metals} == {"XAU", "XAU/KZT", "XAG", "XAG/KZT"}
        assert snapshot.currencies[0].symbol == "USD/KZT"
        assert snapshot.currencies[0].price == 500.0

    async def test_second_call_within_ttl_served_from_cache(self, upstream, feed):
        """Upstreams failing on the second call never get reached."""
        self._healthy(upstream)
        first = await feed.fetch_snapshot()
        calls_after_first = len(upstream.calls)

        self._broken(upstream)
        second = await feed.fetch_snapshot()

        assert second is first
        assert second.to_dict() == first.to_dict()
        assert len(upstream.calls) == calls_after_first

    async def test_total_outage(self, upstream, feed):
        """No route to any host: the snapshot degrades, nothing raises."""
        snapshot = await feed.fetch_snapshot()

        assert not snapshot.is_live
        assert snapshot.crypto == ()
        assert [q.symbol for q in snapshot.equities] == ["HSBK", "KSPI"]
        assert snapshot.metals  # demo prices
        assert snapshot.currencies  # static table
        assert snapshot.statuses[Category.CRYPTO] is FetchStatus.UNAVAILABLE
