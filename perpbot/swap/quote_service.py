"""
Quote and swap-calldata client for the Sushi aggregator API.

    GET {base}/quote/v7/{chainId}?tokenIn&tokenOut&amount&maxSlippage&onlyPools
    GET {base}/swap/v7/{chainId}?...&sender

Both answer ``{"status": "Success", ...}`` on success; any other status is a
SwapError for the corresponding stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from perpbot.core.errors import SwapError, VenueError
from perpbot.execution.venue_http import VenueHttp
from perpbot.swap.tokens import BSC_CHAIN_ID, SUSHI_POOLS, Token, format_units


@dataclass
class Quote:
    amount_in: int
    amount_out: int
    amount_out_formatted: str
    price_impact: float
    gas_estimate: Optional[int]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class SwapTx:
    to: str
    data: str
    gas: Optional[int]
    gas_price: Optional[int]


class SushiQuoteService:
    def __init__(
        self,
        http: VenueHttp,
        base_url: str = "https://api.sushi.com",
        chain_id: int = BSC_CHAIN_ID,
        max_slippage: float = 0.01,
        only_pools: str = SUSHI_POOLS,
    ) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.max_slippage = max_slippage
        self.only_pools = only_pools

    def _params(self, token_in: Token, token_out: Token, amount: int) -> Dict[str, Any]:
        return {
            "tokenIn": token_in.address,
            "tokenOut": token_out.address,
            "amount": str(amount),
            "maxSlippage": str(self.max_slippage),
            "onlyPools": self.only_pools,
        }

    async def _fetch(self, path: str, params: Dict[str, Any], stage: str) -> Dict[str, Any]:
        try:
            data = await self.http.get(
                f"{self.base_url}{path}", params=params, headers={"accept": "application/json"}, stage=stage
            )
        except VenueError as exc:
            raise SwapError(f"{stage} request failed: {exc.message}", stage=stage, detail=exc.detail) from exc
        if not isinstance(data, dict) or data.get("status") != "Success":
            status = data.get("status") if isinstance(data, dict) else data
            raise SwapError(f"{stage} failed: {status}", stage=stage, detail=data)
        return data

    async def quote(self, token_in: Token, token_out: Token, amount_in: int) -> Quote:
        data = await self._fetch(f"/quote/v7/{self.chain_id}", self._params(token_in, token_out, amount_in), "quote")
        try:
            amount_out = int(data["assumedAmountOut"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SwapError("quote has no assumedAmountOut", stage="quote", detail=data) from exc
        gas = data.get("gasSpent")
        return Quote(
            amount_in=amount_in,
            amount_out=amount_out,
            amount_out_formatted=format_units(amount_out, token_out.decimals),
            price_impact=float(data.get("priceImpact") or 0.0),
            gas_estimate=_to_int(gas),
            raw=data,
        )

    async def build_swap_tx(self, token_in: Token, token_out: Token, amount_in: int, sender: str) -> SwapTx:
        params = self._params(token_in, token_out, amount_in)
        params["sender"] = sender
        data = await self._fetch(f"/swap/v7/{self.chain_id}", params, "swap")
        tx = data.get("tx") or {}
        if not tx.get("data") or not tx.get("to"):
            raise SwapError("swap calldata is empty", stage="swap", detail=data)
        return SwapTx(
            to=tx["to"],
            data=tx["data"],
            gas=_to_int(tx.get("gas")),
            gas_price=_to_int(tx.get("gasPrice")),
        )


def _to_int(value: Any) -> Optional[int]:
    """Accept ints, decimal strings and 0x-hex strings."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return int(value, 0)
    return int(value)
