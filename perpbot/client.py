"""
VenueClient: one explicit object per account.

Owns the signing identity, the session, the HTTP transport, the trading
client and the volume bot. Several instances can coexist in one process;
nothing here is module-global.

All exceptions propagate unchanged. The session is replaced only after a
complete successful handshake, and never while the bot is running.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from perpbot.auth.authorizer import RequestAuthorizer
from perpbot.auth.session import Session, SessionAuthenticator
from perpbot.auth.signing import SigningIdentity
from perpbot.bot.clock import Clock, RandomSource
from perpbot.bot.volume_bot import BotConfig, VolumeBot, open_order_list
from perpbot.core.errors import AuthError, NotAuthenticated, SessionBusy, SwapError
from perpbot.core.event_bus import EventBus, EventType
from perpbot.execution.trading_client import TradingClient
from perpbot.execution.venue_http import VenueHttp
from perpbot.infra.logging_cfg import log_event
from perpbot.monitoring.metrics_rich import RichMetrics
from perpbot.swap.swap_orchestrator import SwapOrchestrator

log = logging.getLogger("perpbot")


class VenueClient:
    def __init__(
        self,
        perps_url: str = "https://perps.standx.com",
        auth_url: str = "https://api.standx.com",
        chain: str = "bsc",
        timeout: float = 30.0,
        identity: Optional[SigningIdentity] = None,
        http: Optional[VenueHttp] = None,
        event_bus: Optional[EventBus] = None,
        metrics: Optional[RichMetrics] = None,
        clock: Optional[Clock] = None,
        rng: Optional[RandomSource] = None,
        swap: Optional[SwapOrchestrator] = None,
    ) -> None:
        # a fresh ed25519 keypair per client; never persisted
        self.identity = identity or SigningIdentity.generate()
        self.http = http or VenueHttp(timeout=timeout)
        self.event_bus = event_bus
        self.metrics = metrics
        self.authenticator = SessionAuthenticator(self.http, self.identity, auth_url=auth_url, chain=chain)
        self.authorizer = RequestAuthorizer(self.identity)
        self.trading = TradingClient(self.http, self.authorizer, perps_url=perps_url, auth_url=auth_url)
        self.bot = VolumeBot(self.trading, clock=clock, rng=rng, event_bus=self.event_bus, metrics=metrics)
        self.swap = swap

    @classmethod
    def from_settings(cls, cfg, **kwargs: Any) -> "VenueClient":
        return cls(
            perps_url=cfg.perps_url,
            auth_url=cfg.auth_url,
            chain=cfg.chain,
            timeout=cfg.http_timeout,
            **kwargs,
        )

    @property
    def session(self) -> Optional[Session]:
        return self.authorizer.session

    @property
    def authenticated(self) -> bool:
        return self.session is not None and self.session.authenticated

    def _require_session(self) -> None:
        if not self.authenticated:
            raise NotAuthenticated()

    def _emit(self, event_type: EventType, **data: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event_type, source="client", **data)

    # ========== Session ==========

    async def authenticate(self, private_key: Optional[str], wallet_address: Optional[str] = None) -> Session:
        if self.bot.running:
            raise SessionBusy()
        try:
            session = await self.authenticator.authenticate(private_key, wallet_address)
        except AuthError as exc:
            self._emit(EventType.AUTH_FAILED, stage=exc.stage, error=exc.message)
            raise
        self.authorizer.bind(session)
        self._emit(EventType.AUTH_COMPLETED, address=session.wallet_address)
        return session

    # ========== Trading ==========

    async def get_ticker(self, symbol: str) -> Any:
        return await self.trading.get_ticker(symbol)

    async def get_balance(self) -> Any:
        self._require_session()
        return await self.trading.get_balance()

    async def get_positions(self, symbol: Optional[str] = None) -> Any:
        self._require_session()
        return await self.trading.get_positions(symbol)

    async def get_open_orders(self, symbol: Optional[str] = None) -> Any:
        self._require_session()
        return await self.trading.get_open_orders(symbol)

    async def get_points(self) -> Any:
        self._require_session()
        return await self.trading.get_points()

    async def place_order(
        self,
        symbol: str,
        side: str,
        order_type: str,
        size: Any,
        price: Any = None,
        reduce_only: bool = False,
    ) -> Any:
        self._require_session()
        return await self.trading.place_order(symbol, side, order_type, size, price, reduce_only)

    async def close_position(self, symbol: str, size: Any, side: str) -> Any:
        self._require_session()
        return await self.trading.close_position(symbol, size, side)

    async def cancel_order(self, order_id: Any) -> Any:
        self._require_session()
        return await self.trading.cancel_order(order_id)

    async def cancel_all_orders(self, symbol: Optional[str] = None) -> List[Any]:
        """Cancel every open order (optionally for one symbol). Returns the cancelled ids."""
        self._require_session()
        orders = open_order_list(await self.trading.get_open_orders(symbol))
        ids = [o["id"] for o in orders if isinstance(o, dict) and o.get("id") is not None]
        if not ids:
            return []
        await self.trading.cancel_orders(ids)
        log_event(log, "cancel_all", symbol=symbol, count=len(ids))
        return ids

    async def change_leverage(self, symbol: str, leverage: Any) -> Any:
        self._require_session()
        return await self.trading.change_leverage(symbol, leverage)

    # ========== Volume bot ==========

    async def start_volume_bot(self, config: Union[BotConfig, Mapping[str, Any]]) -> Dict[str, Any]:
        self._require_session()
        if not isinstance(config, BotConfig):
            config = BotConfig.from_mapping(config)
        return await self.bot.start(config)

    def stop_volume_bot(self) -> Dict[str, Any]:
        return self.bot.stop()

    def get_bot_status(self) -> Dict[str, Any]:
        return self.bot.get_status()

    # ========== Swap ==========

    def _require_swap(self) -> SwapOrchestrator:
        if self.swap is None:
            raise SwapError("swap is not configured", stage="quote")
        return self.swap

    async def get_token_balance(self, token: Any) -> Dict[str, Any]:
        return await self._require_swap().token_balance(token)

    async def get_swap_quote(self, token_in: Any, token_out: Any, amount: Any):
        return await self._require_swap().get_quote(token_in, token_out, amount)

    async def execute_swap(self, token_in: Any, token_out: Any, amount: Any) -> Dict[str, Any]:
        return await self._require_swap().execute_swap(token_in, token_out, amount)

    # ========== Teardown ==========

    async def close(self) -> None:
        await self.bot.shutdown()
        if self.swap is not None:
            await self.swap.chain.close()
        await self.http.close()
