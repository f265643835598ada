"""
VolumeBot: unattended paired-order loop that generates trading activity.

State machine:

    STOPPED --start(config)--> RUNNING --stop()--> STOPPED

start() validates the configuration against the venue's minimum order
quantity before anything is placed; a rejected configuration never enters
the loop. Once running, each iteration:

1. reads the reference price (last price, else mark price)
2. draws a size in [min_size, max_size] (4 dp) and a side
3. places a limit order at price + change, change = price * variance * U(-1, 1)
4. waits the pacing delay, then places the opposite-side order at the
   mirrored price
5. every 20th order, cancels resting orders older than two minutes
6. sleeps a random interval in [interval_min_sec, interval_max_sec]

Order and sweep failures are counted and logged and never end the loop. An
error escaping an iteration triggers a fixed cooldown, then the loop goes on.
Only stop() ends it; the flag is checked at iteration and sleep boundaries,
never in the middle of an HTTP call.

"Successful" means the venue accepted the HTTP request. Fills are never
queried from inside the loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from perpbot.bot.clock import Clock, RandomSource, SystemClock, default_random
from perpbot.core.errors import AlreadyRunning, MinSizeTooSmall, PerpBotError, ValidationError
from perpbot.core.event_bus import EventType
from perpbot.core.utils import parse_ts_ms, round_fixed
from perpbot.execution.trading_client import opposite_side

if TYPE_CHECKING:
    from perpbot.core.event_bus import EventBus
    from perpbot.execution.trading_client import TradingClient
    from perpbot.monitoring.metrics_rich import RichMetrics

log = logging.getLogger("perpbot")


class BotRunState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class BotConfig:
    symbol: str
    min_size: float
    max_size: float
    interval_min_sec: float
    interval_max_sec: float
    price_variance: float = 0.001

    # UI payloads use camelCase keys
    _ALIASES = {
        "minSize": "min_size",
        "maxSize": "max_size",
        "intervalMin": "interval_min_sec",
        "intervalMax": "interval_max_sec",
        "interval_min": "interval_min_sec",
        "interval_max": "interval_max_sec",
        "priceVariance": "price_variance",
    }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BotConfig":
        values: Dict[str, Any] = {}
        for key, value in data.items():
            values[cls._ALIASES.get(key, key)] = value
        try:
            return cls(
                symbol=str(values["symbol"]),
                min_size=float(values["min_size"]),
                max_size=float(values["max_size"]),
                interval_min_sec=float(values["interval_min_sec"]),
                interval_max_sec=float(values["interval_max_sec"]),
                price_variance=float(values.get("price_variance", 0.001)),
            )
        except KeyError as exc:
            raise ValidationError(f"Missing bot setting: {exc.args[0]}", field=str(exc.args[0])) from exc
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid bot setting: {exc}") from exc

    @classmethod
    def from_settings(cls, settings) -> "BotConfig":
        return cls(
            symbol=settings.symbol,
            min_size=settings.min_size,
            max_size=settings.max_size,
            interval_min_sec=settings.interval_min_sec,
            interval_max_sec=settings.interval_max_sec,
            price_variance=settings.price_variance,
        )

    def validate(self) -> None:
        if not self.symbol:
            raise ValidationError("symbol is required", field="symbol")
        if self.min_size <= 0:
            raise ValidationError("min_size must be > 0", field="min_size")
        if self.min_size > self.max_size:
            raise ValidationError("min_size must be <= max_size", field="min_size")
        if self.interval_min_sec < 0:
            raise ValidationError("interval_min_sec must be >= 0", field="interval_min_sec")
        if self.interval_min_sec > self.interval_max_sec:
            raise ValidationError("interval_min_sec must be <= interval_max_sec", field="interval_min_sec")
        if not 0 <= self.price_variance < 1:
            raise ValidationError("price_variance must be in [0, 1)", field="price_variance")


@dataclass
class BotStats:
    total_orders: int = 0
    successful_orders: int = 0
    failed_orders: int = 0
    total_volume: Decimal = field(default_factory=Decimal)
    start_time_ms: Optional[int] = None

    def snapshot(self) -> "BotStats":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_orders": self.total_orders,
            "successful_orders": self.successful_orders,
            "failed_orders": self.failed_orders,
            "total_volume": format(self.total_volume, "f"),
            "start_time_ms": self.start_time_ms,
        }


class VolumeBot:
    PACING_DELAY_SEC = 0.5
    SWEEP_EVERY_ORDERS = 20
    STALE_ORDER_AGE_MS = 120_000
    ERROR_COOLDOWN_SEC = 5.0
    SIZE_DECIMALS = 4
    PRICE_DECIMALS = 2

    def __init__(
        self,
        client: "TradingClient",
        clock: Optional[Clock] = None,
        rng: Optional[RandomSource] = None,
        event_bus: Optional["EventBus"] = None,
        metrics: Optional["RichMetrics"] = None,
    ) -> None:
        self.client = client
        self.clock = clock or SystemClock()
        self.rng = rng or default_random()
        self.event_bus = event_bus
        self.metrics = metrics

        self._state = BotRunState.STOPPED
        self._starting = False
        # bumped on every start/stop so a loop from a previous run cannot resume
        self._generation = 0
        self._stats = BotStats()
        self._config: Optional[BotConfig] = None
        self._task: Optional[asyncio.Task] = None

    # ========== Lifecycle ==========

    @property
    def state(self) -> BotRunState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is BotRunState.RUNNING

    @property
    def config(self) -> Optional[BotConfig]:
        return self._config

    async def start(self, config: BotConfig) -> Dict[str, Any]:
        if self.running or self._starting:
            raise AlreadyRunning()
        config.validate()

        self._starting = True
        generation = self._generation
        try:
            venue_min = await self.client.min_order_qty(config.symbol)
            if config.min_size < venue_min:
                raise MinSizeTooSmall(config.min_size, venue_min)
        finally:
            self._starting = False

        if self._generation != generation:
            # stop() arrived while the venue minimum was being fetched
            self._log("bot_start_aborted", logging.WARNING, symbol=config.symbol)
            return {"message": "volume bot start aborted by stop", "symbol": config.symbol}

        self._generation += 1
        self._config = config
        self._stats = BotStats(start_time_ms=self.clock.now_ms())
        self._state = BotRunState.RUNNING
        self._task = asyncio.create_task(
            self._run(config, self._stats, self._generation),
            name=f"volume-bot-{config.symbol}",
        )

        self._log("bot_started", symbol=config.symbol, min_size=config.min_size,
                  max_size=config.max_size, venue_min=venue_min)
        self._emit(EventType.BOT_STARTED, symbol=config.symbol)
        if self.metrics:
            self.metrics.bot_running.labels(symbol=config.symbol).set(1)
        return {"message": "volume bot started", "symbol": config.symbol}

    def stop(self) -> Dict[str, Any]:
        """Flip to STOPPED and return the final stats. In-flight calls are not awaited."""
        was_running = self.running
        self._state = BotRunState.STOPPED
        self._generation += 1
        final = self._stats.snapshot()
        if was_running and self._config is not None:
            self._log("bot_stopped", symbol=self._config.symbol, **final.to_dict())
            self._emit(EventType.BOT_STOPPED, symbol=self._config.symbol, stats=final.to_dict())
            if self.metrics:
                self.metrics.bot_running.labels(symbol=self._config.symbol).set(0)
        return {"message": "volume bot stopped", "stats": final}

    async def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the loop task to notice the stop flag."""
        if self._task is not None:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)

    async def shutdown(self) -> None:
        """Stop and cancel the loop task outright (process exit / client close)."""
        self.stop()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def stats(self) -> BotStats:
        return self._stats.snapshot()

    def get_status(self) -> Dict[str, Any]:
        stats = self._stats.snapshot()
        runtime = 0
        if self.running and stats.start_time_ms is not None:
            runtime = max(0, (self.clock.now_ms() - stats.start_time_ms) // 1000)
        return {"running": self.running, "stats": stats, "runtime_seconds": runtime}

    # ========== Loop ==========

    def _is_current(self, generation: int) -> bool:
        return self.running and self._generation == generation

    async def _run(self, config: BotConfig, stats: BotStats, generation: int) -> None:
        while self._is_current(generation):
            try:
                await self._iteration(config, stats, generation)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._log("iteration_failed", logging.ERROR, symbol=config.symbol,
                          error=str(exc), error_type=type(exc).__name__)
                self._emit(EventType.ITERATION_FAILED, symbol=config.symbol, error=str(exc))
                if self.metrics:
                    self.metrics.iteration_errors.labels(symbol=config.symbol).inc()
                await self.clock.sleep(self.ERROR_COOLDOWN_SEC)

    async def _iteration(self, config: BotConfig, stats: BotStats, generation: int) -> None:
        price = await self.client.current_price(config.symbol)
        if self.metrics:
            self.metrics.last_price.labels(symbol=config.symbol).set(price)

        size = round_fixed(self.rng.uniform(config.min_size, config.max_size), self.SIZE_DECIMALS)
        side = "buy" if self.rng.random() > 0.5 else "sell"
        price_change = price * config.price_variance * (self.rng.random() * 2 - 1)

        first_px = round_fixed(price + price_change, self.PRICE_DECIMALS)
        await self._place(config, stats, side, size, first_px)

        await self.clock.sleep(self.PACING_DELAY_SEC)
        if not self._is_current(generation):
            return

        counter_px = price - price_change if side == "buy" else price + price_change
        await self._place(config, stats, opposite_side(side), size,
                          round_fixed(counter_px, self.PRICE_DECIMALS))

        if stats.total_orders > 0 and stats.total_orders % self.SWEEP_EVERY_ORDERS == 0:
            await self._sweep(config)

        wait = self.rng.uniform(config.interval_min_sec, config.interval_max_sec)
        self._log("iteration_sleep", logging.DEBUG, symbol=config.symbol, wait_sec=round(wait, 1))
        await self.clock.sleep(wait)

    async def _place(self, config: BotConfig, stats: BotStats, side: str, size: str, price: str) -> bool:
        try:
            await self.client.place_order(config.symbol, side, "limit", size, price)
        except Exception as exc:
            error = exc.message if isinstance(exc, PerpBotError) else str(exc)
            stats.failed_orders += 1
            stats.total_orders += 1
            self._log("order_failed", logging.WARNING, symbol=config.symbol, side=side,
                      qty=size, price=price, error=error, stage=getattr(exc, "stage", None),
                      error_type=type(exc).__name__)
            self._emit(EventType.ORDER_FAILED, symbol=config.symbol, side=side,
                       qty=size, price=price, error=error)
            if self.metrics:
                self.metrics.orders_placed.labels(symbol=config.symbol, side=side, result="failed").inc()
            return False

        stats.successful_orders += 1
        stats.total_volume += Decimal(size)
        stats.total_orders += 1
        self._emit(EventType.ORDER_PLACED, symbol=config.symbol, side=side, qty=size, price=price)
        if self.metrics:
            self.metrics.orders_placed.labels(symbol=config.symbol, side=side, result="ok").inc()
            self.metrics.volume.labels(symbol=config.symbol).inc(float(size))
        return True

    async def _sweep(self, config: BotConfig) -> int:
        """Cancel resting orders older than STALE_ORDER_AGE_MS. Failures are swallowed."""
        try:
            resp = await self.client.get_open_orders(config.symbol)
            now = self.clock.now_ms()
            stale_ids = [o["id"] for o in open_order_list(resp) if _is_stale(o, now, self.STALE_ORDER_AGE_MS)]
            if stale_ids:
                await self.client.cancel_orders(stale_ids)
        except PerpBotError as exc:
            self._log("sweep_failed", logging.WARNING, symbol=config.symbol, error=exc.message)
            self._emit(EventType.SWEEP_FAILED, symbol=config.symbol, error=exc.message)
            if self.metrics:
                self.metrics.sweep_errors.labels(symbol=config.symbol).inc()
            return 0

        self._log("sweep_completed", symbol=config.symbol, cancelled=len(stale_ids))
        self._emit(EventType.SWEEP_COMPLETED, symbol=config.symbol, cancelled=len(stale_ids))
        if self.metrics and stale_ids:
            self.metrics.sweep_cancelled.labels(symbol=config.symbol).inc(len(stale_ids))
        return len(stale_ids)

    # ========== Helpers ==========

    def _log(self, event: str, level: int = logging.INFO, **data: Any) -> None:
        log.log(level, json.dumps({"event": event, **data}, default=str))

    def _emit(self, event_type: EventType, **data: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event_type, source="volume_bot", **data)


def open_order_list(resp: Any) -> List[Dict[str, Any]]:
    if isinstance(resp, dict):
        result = resp.get("result")
        return result if isinstance(result, list) else []
    if isinstance(resp, list):
        return resp
    return []


def _is_stale(order: Any, now_ms: int, max_age_ms: int) -> bool:
    if not isinstance(order, dict) or order.get("id") is None:
        return False
    created = parse_ts_ms(order.get("created_at"))
    if created is None:
        return False
    return now_ms - created > max_age_ms
