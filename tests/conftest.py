"""
Pytest configuration and shared fixtures.

HTTP is stubbed with httpx.MockTransport; the bot runs on a virtual clock so
no test waits in real time or touches the network.
"""

import asyncio
import json
import random
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Make the repo root importable when running without an editable install
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from perpbot.auth.signing import SigningIdentity
from perpbot.core.errors import VenueError
from perpbot.execution.venue_http import VenueHttp

# Well-known throwaway key (hardhat account #0); never funded on mainnet
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class FakeClock:
    """Virtual time: sleep() advances now_ms and yields to the event loop once."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms
        self.sleeps: List[float] = []

    def now_ms(self) -> int:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += int(seconds * 1000)
        await asyncio.sleep(0)


class RecordingHandler:
    """MockTransport handler that routes by path and records every request."""

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": f"no route for {request.url.path}"})
        if callable(route):
            return route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def bodies(self, path: str) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path]

    def last(self, path: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path == path][-1]


def make_http(handler: Callable[[httpx.Request], httpx.Response], timeout: float = 30.0) -> VenueHttp:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VenueHttp(timeout=timeout, client=client)


class FakeTradingClient:
    """Stand-in for TradingClient as seen by the volume bot."""

    def __init__(self, price: float = 50000.0, min_qty: float = 0.0001):
        self.price = price
        self.min_qty = min_qty
        self.orders: List[Dict[str, Any]] = []
        self.fail_sides: set = set()
        self.price_error: Optional[Exception] = None
        self.open_orders: Any = {"result": []}
        self.open_orders_error: Optional[Exception] = None
        self.cancelled: List[List[Any]] = []
        self.place_error: Optional[Exception] = None
        # when set, min_order_qty waits on it so a test can act mid-start
        self.min_qty_gate: Optional[asyncio.Event] = None

    async def min_order_qty(self, symbol: str) -> float:
        if self.min_qty_gate is not None:
            await self.min_qty_gate.wait()
        return self.min_qty

    async def current_price(self, symbol: str) -> float:
        if self.price_error is not None:
            raise self.price_error
        return self.price

    async def place_order(self, symbol, side, order_type, size, price=None, reduce_only=False):
        self.orders.append({
            "symbol": symbol, "side": side, "type": order_type, "size": size, "price": price,
        })
        if self.place_error is not None:
            raise self.place_error
        if side in self.fail_sides:
            raise VenueError("insufficient margin", stage="order", status_code=400,
                             detail={"code": 400, "message": "insufficient margin"})
        return {"code": 0, "message": "success"}

    async def get_open_orders(self, symbol=None):
        if self.open_orders_error is not None:
            raise self.open_orders_error
        return self.open_orders

    async def cancel_orders(self, order_ids):
        self.cancelled.append(list(order_ids))
        return {"code": 0}


async def run_until(predicate: Callable[[], bool], max_steps: int = 10_000) -> None:
    for _ in range(max_steps):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def identity() -> SigningIdentity:
    return SigningIdentity.from_seed(bytes(range(32)))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def fake_trading() -> FakeTradingClient:
    return FakeTradingClient()
