"""Per-symbol memory of the last observed price, for adapters whose upstream
reports a snapshot rate but no delta."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Change:
    """Delta of one observation against the previous one."""

    change: float = 0.0
    change_percent: float = 0.0
    previous: float | None = None


class ChangeTracker:
    """Previous-value table for one adapter's symbol namespace.

    Each observe() reads the previous price, computes the delta, then stores
    the new price as the baseline for the next cycle. Swings larger than
    ``max_percent`` are reported as zero change, but the new price still
    becomes the baseline.

    Only call observe() with a successfully parsed upstream price; fallback
    values must never be written here.
    """

    def __init__(self, max_percent: float) -> None:
        self._max_percent = max_percent
        self._previous: dict[str, float] = {}

    @property
    def max_percent(self) -> float:
        return self._max_percent

    def observe(self, symbol: str, price: float) -> Change:
        previous = self._previous.get(symbol)
        self._previous[symbol] = price

        if not previous or previous <= 0:
            return Change(previous=previous)

        change = price - previous
        change_percent = change / previous * 100
        if abs(change_percent) > self._max_percent:
            logger.warning(
                "Rejecting implausible %.2f%% move for %s (%.6g -> %.6g)",
                change_percent,
                symbol,
                previous,
                price,
            )
            return Change(previous=previous)
        return Change(change=change, change_percent=change_percent, previous=previous)

    def previous(self, symbol: str) -> float | None:
        """Last observed price for a symbol, or None if never observed."""
        return self._previous.get(symbol)

    def __len__(self) -> int:
        return len(self._previous)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._previous
