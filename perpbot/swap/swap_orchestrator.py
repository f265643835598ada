"""
SwapOrchestrator: quote -> allowance -> swap -> confirmation on BSC.

A linear sequence with no retries. Any failed step raises SwapError with
the stage that failed ("quote", "approve", "swap" or "confirm"); nothing
is rolled back, so an approval that succeeded stays in place for the next
attempt.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union, TYPE_CHECKING

from perpbot.core.errors import SwapError
from perpbot.core.event_bus import EventType
from perpbot.infra.logging_cfg import log_event
from perpbot.swap.quote_service import Quote
from perpbot.swap.tokens import (
    BSC_EXPLORER_TX,
    SUSHI_ROUTER,
    TOKENS,
    Token,
    format_units,
    to_base_units,
)

if TYPE_CHECKING:
    from perpbot.core.event_bus import EventBus
    from perpbot.swap.chain import ChainGateway
    from perpbot.swap.quote_service import SushiQuoteService

log = logging.getLogger("perpbot")

DEFAULT_SWAP_GAS = 500_000

TokenRef = Union[str, Token]


class SwapOrchestrator:
    def __init__(
        self,
        quote_service: "SushiQuoteService",
        chain: "ChainGateway",
        router: str = SUSHI_ROUTER,
        tokens: Optional[Mapping[str, Token]] = None,
        event_bus: Optional["EventBus"] = None,
    ) -> None:
        self.quote_service = quote_service
        self.chain = chain
        self.router = router
        self.tokens = dict(tokens or TOKENS)
        self.event_bus = event_bus

    @property
    def wallet_address(self) -> str:
        return self.chain.address

    def resolve(self, token: TokenRef) -> Token:
        if isinstance(token, Token):
            return token
        found = self.tokens.get(str(token).upper())
        if found is None:
            raise ValueError(f"unknown token: {token!r}")
        return found

    async def token_balance(self, token: TokenRef) -> Dict[str, Any]:
        tok = self.resolve(token)
        raw = await self.chain.token_balance(tok.address)
        return {
            "token": tok.symbol,
            "balance": raw["balance"],
            "decimals": raw["decimals"],
            "formatted": format_units(raw["balance"], raw["decimals"]),
        }

    async def get_quote(self, token_in: TokenRef, token_out: TokenRef, amount: Any) -> Quote:
        tin, tout = self.resolve(token_in), self.resolve(token_out)
        return await self.quote_service.quote(tin, tout, to_base_units(amount, tin.decimals))

    async def ensure_allowance(self, token: Token, amount: int) -> Dict[str, Any]:
        """Approve the router for max-uint unless the current allowance covers ``amount``."""
        try:
            existing = await self.chain.allowance(token.address, self.router)
        except Exception as exc:
            raise SwapError(f"allowance check failed: {exc}", stage="approve") from exc
        if existing >= amount:
            return {"approved": False, "existing": existing, "tx_hash": None}

        log_event(log, "swap_approve", token=token.symbol, spender=self.router)
        try:
            tx_hash = await self.chain.approve(token.address, self.router)
            receipt = await self.chain.wait_for_receipt(tx_hash)
        except Exception as exc:
            raise SwapError(f"approval failed: {exc}", stage="approve") from exc
        if receipt.get("status") == 0:
            raise SwapError("approval reverted", stage="approve", tx_hash=tx_hash)
        return {"approved": True, "existing": existing, "tx_hash": tx_hash}

    async def execute_swap(self, token_in: TokenRef, token_out: TokenRef, amount: Any) -> Dict[str, Any]:
        tin, tout = self.resolve(token_in), self.resolve(token_out)
        amount_in = to_base_units(amount, tin.decimals)
        log_event(log, "swap_start", token_in=tin.symbol, token_out=tout.symbol, amount=str(amount))

        quote = await self.quote_service.quote(tin, tout, amount_in)
        await self.ensure_allowance(tin, amount_in)
        swap_tx = await self.quote_service.build_swap_tx(tin, tout, amount_in, self.wallet_address)

        tx: Dict[str, Any] = {
            "to": swap_tx.to,
            "data": swap_tx.data,
            "gas": swap_tx.gas or DEFAULT_SWAP_GAS,
        }
        if swap_tx.gas_price:
            tx["gasPrice"] = swap_tx.gas_price

        try:
            tx_hash = await self.chain.send_transaction(tx)
        except Exception as exc:
            raise SwapError(f"broadcast failed: {exc}", stage="swap") from exc

        explorer_url = f"{BSC_EXPLORER_TX}{tx_hash}"
        try:
            receipt = await self.chain.wait_for_receipt(tx_hash)
        except Exception as exc:
            raise SwapError(f"no receipt for {explorer_url}: {exc}", stage="confirm", tx_hash=tx_hash) from exc
        if receipt.get("status") == 0:
            log_event(log, "swap_reverted", logging.ERROR, tx_hash=tx_hash)
            raise SwapError(f"swap reverted: {explorer_url}", stage="confirm", tx_hash=tx_hash)

        result = {
            "success": True,
            "tx_hash": tx_hash,
            "amount_in": format_units(amount_in, tin.decimals),
            "amount_out": quote.amount_out_formatted,
            "price_impact": quote.price_impact,
            "explorer_url": explorer_url,
        }
        log_event(log, "swap_completed", token_in=tin.symbol, token_out=tout.symbol, tx_hash=tx_hash)
        if self.event_bus is not None:
            self.event_bus.emit(EventType.SWAP_COMPLETED, source="swap", **result)
        return result
