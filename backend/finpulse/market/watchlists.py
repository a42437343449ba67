"""Default watch-lists and fallback tables for the market data adapters.

Every adapter takes its list as a constructor argument; these are only the
production defaults.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Instrument:
    """One watched symbol: the upstream's identifier and what the UI shows."""

    symbol: str  # Identifier as the upstream knows it
    name: str
    display_symbol: str | None = None  # Symbol shown to the user, if different

    @property
    def shown_as(self) -> str:
        return self.display_symbol or self.symbol


# US large-caps quoted by Finnhub
FOREIGN_EQUITIES: tuple[Instrument, ...] = (
    Instrument("AAPL", "Apple Inc."),
    Instrument("MSFT", "Microsoft"),
    Instrument("GOOGL", "Alphabet"),
    Instrument("AMZN", "Amazon"),
    Instrument("NVDA", "NVIDIA"),
    Instrument("TSLA", "Tesla"),
    Instrument("META", "Meta Platforms"),
)

# Kazakhstan Stock Exchange shares scraped from kase.kz
LOCAL_EQUITIES: tuple[Instrument, ...] = (
    Instrument("HSBK", "Halyk Bank"),
    Instrument("KZTO", "KazTransOil"),
    Instrument("KEGC", "KEGOC"),
    Instrument("KMGZ", "KazMunayGas"),
    Instrument("KSPI", "Kaspi.kz"),
    Instrument("KZAP", "Kazatomprom"),
    Instrument("AIRA", "Air Astana"),
    Instrument("CCBN", "Bank CenterCredit"),
)

# Last known KASE quotes, served until the first successful scrape:
# symbol -> (price, change, change_percent), in KZT
LOCAL_EQUITY_SEEDS: dict[str, tuple[float, float, float]] = {
    "HSBK": (401.88, 0.80, 0.20),
    "KZTO": (966.00, 2.22, 0.23),
    "KEGC": (1471.95, 0.0, 0.0),
    "KMGZ": (23999.99, 873.99, 3.78),
    "KSPI": (39901.00, -897.00, -2.20),
    "KZAP": (41950.00, -2340.00, -5.28),
    "AIRA": (870.78, -1.22, -0.14),
    "CCBN": (4730.51, -31.49, -0.66),
}

# Binance spot pairs
CRYPTO_PAIRS: tuple[Instrument, ...] = (
    Instrument("BTCUSDT", "Bitcoin", "BTC"),
    Instrument("ETHUSDT", "Ethereum", "ETH"),
    Instrument("BNBUSDT", "BNB", "BNB"),
    Instrument("SOLUSDT", "Solana", "SOL"),
    Instrument("XRPUSDT", "Ripple", "XRP"),
    Instrument("ADAUSDT", "Cardano", "ADA"),
    Instrument("DOGEUSDT", "Dogecoin", "DOGE"),
    Instrument("TONUSDT", "Toncoin", "TON"),
)

PRECIOUS_METALS: tuple[Instrument, ...] = (
    Instrument("XAU", "Gold"),
    Instrument("XAG", "Silver"),
    Instrument("XPT", "Platinum"),
    Instrument("XPD", "Palladium"),
)

# Metals that also get a per-gram quote in the local currency
PER_GRAM_METALS: frozenset[str] = frozenset({"XAU", "XAG"})

# Demo spot prices in USD per troy ounce
METAL_SEED_PRICES: dict[str, float] = {
    "XAU": 2045.00,
    "XAG": 23.15,
    "XPT": 925.00,
    "XPD": 985.00,
}

LOCAL_CURRENCY = "KZT"

# Foreign currencies priced in KZT; symbol is the ISO code of the foreign side
FOREIGN_CURRENCIES: tuple[Instrument, ...] = (
    Instrument("USD", "US Dollar", "USD/KZT"),
    Instrument("EUR", "Euro", "EUR/KZT"),
    Instrument("RUB", "Russian Ruble", "RUB/KZT"),
    Instrument("GBP", "British Pound", "GBP/KZT"),
    Instrument("CNY", "Chinese Yuan", "CNY/KZT"),
    Instrument("TRY", "Turkish Lira", "TRY/KZT"),
    Instrument("UZS", "Uzbek Sum", "UZS/KZT"),
    Instrument("KGS", "Kyrgyz Som", "KGS/KZT"),
)

# KZT per 1 unit of foreign currency, as of early 2026
CURRENCY_FALLBACK_RATES: dict[str, float] = {
    "USD": 501.24,
    "EUR": 528.50,
    "RUB": 5.12,
    "GBP": 632.80,
    "CNY": 68.95,
    "TRY": 14.20,
    "UZS": 0.038,
    "KGS": 5.72,
}

USD_TO_LOCAL_FALLBACK = CURRENCY_FALLBACK_RATES["USD"]
