"""
TradingClient: typed operations against the perps venue.

Each method is a single authorized request with no local retry. Venue
error payloads surface verbatim on the raised VenueError; the caller (bot
or UI) decides what to do about them.

Write requests (orders, cancels, leverage) are signed by the
RequestAuthorizer over the exact body string that goes on the wire.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from perpbot.auth.authorizer import RequestAuthorizer
from perpbot.core.errors import VenueError
from perpbot.core.utils import to_decimal_str
from perpbot.execution.venue_http import VenueHttp, dumps_body

log = logging.getLogger("perpbot")

SIDES = ("buy", "sell")
ORDER_TYPES = ("market", "limit")
MARKET_PRICE = "0"
OPEN_ORDERS_LIMIT = 500
DEFAULT_MIN_ORDER_QTY = 0.0001


def opposite_side(side: str) -> str:
    if side not in SIDES:
        raise ValueError(f"invalid side: {side!r}")
    return "sell" if side == "buy" else "buy"


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    side: str
    order_type: str
    qty: str
    price: Optional[str]
    time_in_force: str
    reduce_only: bool = False

    @classmethod
    def build(
        cls,
        symbol: str,
        side: str,
        order_type: str,
        size: Any,
        price: Any = None,
        reduce_only: bool = False,
    ) -> "OrderRequest":
        """Normalize an order. Market orders always go out at price "0" / ioc."""
        if side not in SIDES:
            raise ValueError(f"invalid side: {side!r}")
        if order_type not in ORDER_TYPES:
            raise ValueError(f"invalid order type: {order_type!r}")
        qty = to_decimal_str(size)
        if order_type == "market":
            return cls(symbol, side, order_type, qty, MARKET_PRICE, "ioc", bool(reduce_only))
        if price is None or price == "":
            raise ValueError("limit order requires a price")
        return cls(symbol, side, order_type, qty, to_decimal_str(price), "gtc", bool(reduce_only))

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "symbol": self.symbol,
            "side": self.side,
            "order_type": self.order_type,
            "qty": self.qty,
            "time_in_force": self.time_in_force,
            "reduce_only": self.reduce_only,
        }
        if self.price is not None:
            body["price"] = self.price
        return body


class TradingClient:
    def __init__(
        self,
        http: VenueHttp,
        authorizer: RequestAuthorizer,
        perps_url: str = "https://perps.standx.com",
        auth_url: str = "https://api.standx.com",
    ) -> None:
        self.http = http
        self.authorizer = authorizer
        self.perps_url = perps_url.rstrip("/")
        self.auth_url = auth_url.rstrip("/")

    # ========== Reads ==========

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None, stage: str = "query") -> Any:
        return await self.http.get(url, params=params, headers=self.authorizer.headers(), stage=stage)

    async def _post(self, path: str, data: Dict[str, Any], stage: str) -> Any:
        body = dumps_body(data)
        return await self.http.post(
            f"{self.perps_url}{path}", body, headers=self.authorizer.headers(body), stage=stage
        )

    async def get_symbol_info(self, symbol: str) -> Any:
        return await self._get(f"{self.perps_url}/api/query_symbol_info", {"symbol": symbol})

    async def get_market(self, symbol: str) -> Any:
        return await self._get(f"{self.perps_url}/api/query_symbol_market", {"symbol": symbol})

    async def get_ticker(self, symbol: str) -> Any:
        return await self._get(f"{self.perps_url}/api/query_symbol_price", {"symbol": symbol})

    async def get_balance(self) -> Any:
        return await self._get(f"{self.perps_url}/api/query_balance_v2")

    async def get_positions(self, symbol: Optional[str] = None) -> Any:
        params = {"symbol": symbol} if symbol else None
        return await self._get(f"{self.perps_url}/api/query_positions", params)

    async def get_open_orders(self, symbol: Optional[str] = None) -> Any:
        params: Dict[str, Any] = {"limit": OPEN_ORDERS_LIMIT}
        if symbol:
            params = {"symbol": symbol, "limit": OPEN_ORDERS_LIMIT}
        return await self._get(f"{self.perps_url}/api/query_open_orders", params)

    async def get_points(self) -> Any:
        return await self._get(f"{self.auth_url}/v1/offchain/pre-deposit/points")

    async def min_order_qty(self, symbol: str) -> float:
        """Venue minimum order quantity, from the first symbol-info entry."""
        info = await self.get_symbol_info(symbol)
        entry = info[0] if isinstance(info, list) and info else info
        raw = entry.get("min_order_qty") if isinstance(entry, dict) else None
        if raw in (None, ""):
            return DEFAULT_MIN_ORDER_QTY
        return float(raw)

    async def current_price(self, symbol: str) -> float:
        """Last traded price, falling back to mark price."""
        ticker = await self.get_ticker(symbol)
        if not isinstance(ticker, dict):
            raise VenueError("Unexpected ticker payload", stage="ticker", detail=ticker)
        raw = ticker.get("last_price") or ticker.get("mark_price")
        if raw in (None, ""):
            raise VenueError("Ticker has neither last_price nor mark_price", stage="ticker", detail=ticker)
        return float(raw)

    # ========== Writes ==========

    async def submit(self, order: OrderRequest) -> Any:
        try:
            resp = await self._post("/api/new_order", order.to_body(), stage="order")
        except VenueError as exc:
            log.error(json.dumps({
                "event": "order_submit_error",
                "symbol": order.symbol,
                "side": order.side,
                "qty": order.qty,
                "price": order.price,
                "error": exc.message,
                "status": exc.status_code,
            }))
            raise
        log.info(json.dumps({
            "event": "order_submit_ack",
            "symbol": order.symbol,
            "side": order.side,
            "type": order.order_type,
            "qty": order.qty,
            "price": order.price,
            "reduce_only": order.reduce_only,
        }))
        return resp

    async def place_order(
        self,
        symbol: str,
        side: str,
        order_type: str,
        size: Any,
        price: Any = None,
        reduce_only: bool = False,
    ) -> Any:
        return await self.submit(OrderRequest.build(symbol, side, order_type, size, price, reduce_only))

    async def close_position(self, symbol: str, size: Any, side: str) -> Any:
        """Reduce-only market order on the side opposite to the position's ``side``."""
        qty = to_decimal_str(size).lstrip("-")
        order = OrderRequest.build(symbol, opposite_side(side), "market", qty, reduce_only=True)
        return await self.submit(order)

    async def cancel_order(self, order_id: Any) -> Any:
        resp = await self._post("/api/cancel_order", {"order_id": order_id}, stage="cancel")
        log.info(json.dumps({"event": "order_cancelled", "order_id": order_id}))
        return resp

    async def cancel_orders(self, order_ids: Iterable[Any]) -> Any:
        ids: List[Any] = list(order_ids)
        resp = await self._post("/api/cancel_orders", {"orderIdList": ids}, stage="cancel")
        log.info(json.dumps({"event": "orders_cancelled", "count": len(ids)}))
        return resp

    async def change_leverage(self, symbol: str, leverage: Any) -> Any:
        data = {"symbol": symbol, "leverage": int(leverage)}
        resp = await self._post("/api/change_leverage", data, stage="leverage")
        log.info(json.dumps({"event": "leverage_changed", "symbol": symbol, "leverage": data["leverage"]}))
        return resp
