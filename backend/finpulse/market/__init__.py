"""Market data subsystem for FinPulse.

Public API:
    Quote               - Immutable normalized price record
    MarketSnapshot      - Merged quotes of all categories for one cycle
    Category            - Quote categories (equities, crypto, metals, currencies)
    MarketDataFeed      - Read-only contract consumed by the UI
    TTLCache            - In-memory cache with per-entry expiry
    create_market_feed  - Factory that wires adapters from the environment
    create_market_router - FastAPI router factory for the market endpoints
    is_snapshot_live    - Whether a snapshot carries genuine upstream data
"""

from .cache import TTLCache
from .factory import create_market_feed, provider_configuration
from .interface import MarketDataFeed
from .models import Category, FetchStatus, MarketSnapshot, Quote, is_snapshot_live
from .routes import create_market_router

__all__ = [
    "Quote",
    "MarketSnapshot",
    "Category",
    "FetchStatus",
    "MarketDataFeed",
    "TTLCache",
    "create_market_feed",
    "create_market_router",
    "provider_configuration",
    "is_snapshot_live",
]
