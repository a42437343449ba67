"""HTTP endpoints serving the market snapshot to the app."""

from __future__ import annotations

from fastapi import APIRouter

from .factory import provider_configuration
from .interface import MarketDataFeed
from .models import Category


def create_market_router(feed: MarketDataFeed) -> APIRouter:
    """Create the market router with a reference to the feed.

    This factory pattern lets us inject the feed without globals. Every
    endpoint is read-only; refresh cadence is up to the polling client.
    """
    router = APIRouter(prefix="/api/market", tags=["market"])

    @router.get("/snapshot")
    async def get_snapshot() -> dict:
        """All categories plus the liveness flag the UI uses for its Demo badge."""
        snapshot = await feed.fetch_snapshot()
        return snapshot.to_dict()

    @router.get("/config")
    async def get_config() -> dict:
        return provider_configuration()

    @router.get("/{category}")
    async def get_category(category: Category) -> dict:
        quotes = await feed.fetch_category(category)
        return {"category": category.value, "quotes": [q.to_dict() for q in quotes]}

    return router
