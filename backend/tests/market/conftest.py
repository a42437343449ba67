"""Fixtures for market data tests.

Upstream APIs are replaced with an ``httpx.MockTransport`` so adapters run
their real request, status and JSON handling against canned responses.
"""

import inspect
from collections.abc import Callable

import httpx
import pytest

from finpulse.market.watchlists import Instrument

Handler = Callable[[httpx.Request], object]


class UpstreamStub:
    """Routes requests by host to canned handlers and records every call."""

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.calls: list[httpx.Request] = []

    def on(self, host: str, handler: Handler) -> None:
        self.routes[host] = handler

    def json(self, host: str, payload: object, status_code: int = 200) -> None:
        self.on(host, lambda request: httpx.Response(status_code, json=payload))

    def raw(self, host: str, body: str, status_code: int = 200) -> None:
        """Serve a literal body, e.g. JSON with 1e999 or NaN that json= would refuse."""
        self.on(
            host,
            lambda request: httpx.Response(
                status_code,
                content=body.encode(),
                headers={"Content-Type": "application/json"},
            ),
        )

    def fail(self, host: str, status_code: int = 503) -> None:
        self.on(host, lambda request: httpx.Response(status_code))

    def hits(self, host: str) -> int:
        return sum(1 for request in self.calls if request.url.host == host)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get(request.url.host)
        if handler is None:
            raise httpx.ConnectError(f"no route to {request.url.host}", request=request)
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def client(upstream):
    return upstream.client()


@pytest.fixture
def foreign_equities():
    return (Instrument("AAPL", "Apple Inc."), Instrument("MSFT", "Microsoft"))


@pytest.fixture
def local_equities():
    return (Instrument("HSBK", "Halyk Bank"), Instrument("KSPI", "Kaspi.kz"))


@pytest.fixture
def local_seeds():
    return {
        "HSBK": (400.00, 1.00, 0.25),
        "KSPI": (40000.00, -500.00, -1.23),
    }
