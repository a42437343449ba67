"""Data models for market data."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class Category(str, Enum):
    """Quote categories, one per provider adapter."""

    EQUITIES = "equities"
    CRYPTO = "crypto"
    METALS = "metals"
    CURRENCIES = "currencies"


class FetchStatus(str, Enum):
    """Outcome of one adapter cycle against its upstream."""

    LIVE = "live"
    UNCONFIGURED = "unconfigured"  # No API key; upstream never contacted
    UNAVAILABLE = "unavailable"  # Network error, non-2xx, timeout
    MALFORMED = "malformed"  # Response arrived but could not be used


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable normalized price record for one symbol."""

    symbol: str
    name: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    unit: str | None = None  # e.g. "oz", "g"
    currency: str | None = None  # Currency the price is quoted in

    def __post_init__(self) -> None:
        if not math.isfinite(self.price):
            raise ValueError(f"Non-finite price for {self.symbol}: {self.price}")
        if self.price < 0:
            raise ValueError(f"Negative price for {self.symbol}: {self.price}")

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat'."""
        if self.change > 0:
            return "up"
        elif self.change < 0:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        """Serialize for JSON transmission."""
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "unit": self.unit,
            "currency": self.currency,
            "direction": self.direction,
        }


@dataclass(frozen=True, slots=True)
class FetchResult:
    """What one adapter produced for one refresh cycle.

    ``fallback`` marks seed/demo/stale data served in place of a live answer;
    ``status`` records what the upstream actually did.
    """

    category: Category
    quotes: tuple[Quote, ...] = ()
    status: FetchStatus = FetchStatus.LIVE
    fallback: bool = False

    @property
    def is_live(self) -> bool:
        return self.status is FetchStatus.LIVE and not self.fallback and bool(self.quotes)


@dataclass(frozen=True, slots=True)
class MarketSnapshot:
    """Merged result of all four adapters for one cycle. Superseded wholesale."""

    equities: tuple[Quote, ...] = ()
    crypto: tuple[Quote, ...] = ()
    metals: tuple[Quote, ...] = ()
    currencies: tuple[Quote, ...] = ()
    generated_at: int = 0  # Unix milliseconds
    is_live: bool = False
    statuses: Mapping[Category, FetchStatus] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Cached snapshots are shared between pollers, so the status map is read-only
        object.__setattr__(self, "statuses", MappingProxyType(dict(self.statuses)))

    def quotes_for(self, category: Category) -> tuple[Quote, ...]:
        """Quotes of a single category."""
        return getattr(self, Category(category).value)

    def to_dict(self) -> dict:
        """Serialize for JSON transmission."""
        data: dict = {
            category.value: [q.to_dict() for q in self.quotes_for(category)]
            for category in Category
        }
        data["generated_at"] = self.generated_at
        data["is_live"] = self.is_live
        data["statuses"] = {c.value: s.value for c, s in self.statuses.items()}
        return data


def is_snapshot_live(snapshot: MarketSnapshot) -> bool:
    """True when the snapshot carries genuine equity and crypto data."""
    return snapshot.is_live
