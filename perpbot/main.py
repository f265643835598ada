"""
Headless entry point: authenticate, run the volume bot until SIGINT/SIGTERM.

    python -m perpbot.main
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import signal
import sys
from typing import Optional

import yaml
from prometheus_client import start_http_server

from perpbot.auth.wallet import WalletSigner
from perpbot.bot.volume_bot import BotConfig
from perpbot.client import VenueClient
from perpbot.config.config import Settings
from perpbot.config.config_validator import validate_and_log
from perpbot.config.settings_store import SettingsStore, YamlSettingsStore
from perpbot.core.errors import PerpBotError, ValidationError
from perpbot.core.event_bus import Event, EventBus
from perpbot.execution.venue_http import VenueHttp
from perpbot.infra.logging_cfg import build_logger
from perpbot.monitoring.metrics_rich import RichMetrics
from perpbot.swap.chain import ChainGateway
from perpbot.swap.quote_service import SushiQuoteService
from perpbot.swap.swap_orchestrator import SwapOrchestrator

log = logging.getLogger("perpbot")


def _trace_event(event: Event) -> None:
    log.debug(json.dumps({"event": "bus_event", "type": event.type.name, "source": event.source, **event.data}, default=str))


def build_swap(cfg: Settings, http: VenueHttp, event_bus=None) -> SwapOrchestrator:
    chain = ChainGateway(cfg.rpc_url, WalletSigner(cfg.private_key), timeout=cfg.http_timeout)
    quotes = SushiQuoteService(http, base_url=cfg.swap_api_url, max_slippage=cfg.swap_max_slippage)
    return SwapOrchestrator(quotes, chain, event_bus=event_bus)


def load_bot_config(cfg: Settings, store: Optional[SettingsStore] = None) -> BotConfig:
    """Bot settings from the environment, overlaid by the ``volume_bot`` section of the settings file."""
    store = store or YamlSettingsStore(cfg.settings_file)
    try:
        stored = store.load()
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ValidationError(f"Cannot read settings file {cfg.settings_file}: {exc}") from exc

    base = BotConfig.from_settings(cfg)
    overrides = stored.get("volume_bot")
    if not overrides:
        return base
    if not isinstance(overrides, dict):
        raise ValidationError("volume_bot settings must be a mapping", field="volume_bot")

    merged = dataclasses.asdict(base)
    merged.update(overrides)
    config = BotConfig.from_mapping(merged)
    log.info(json.dumps({"event": "bot_settings_loaded", "path": cfg.settings_file, "keys": sorted(overrides)}))
    return config


async def run(cfg: Settings) -> int:
    metrics = RichMetrics()
    if cfg.metrics_port > 0:
        start_http_server(cfg.metrics_port, registry=metrics.registry)
        log.info(json.dumps({"event": "metrics_server_started", "port": cfg.metrics_port}))

    event_bus = EventBus(history_size=200)
    event_bus.subscribe_all(_trace_event, name="trace")
    bus_task = asyncio.create_task(event_bus.start(), name="event-bus")

    http = VenueHttp(timeout=cfg.http_timeout)
    client = VenueClient.from_settings(cfg, http=http, metrics=metrics, event_bus=event_bus)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass

    try:
        client.swap = build_swap(cfg, http, client.event_bus)
        await client.authenticate(cfg.private_key, cfg.wallet_address)
        if cfg.leverage > 0:
            await client.change_leverage(cfg.symbol, cfg.leverage)
        await client.start_volume_bot(load_bot_config(cfg))
        log.info(json.dumps({"event": "startup", "symbol": cfg.symbol}))

        await stop_event.wait()
        log.info("Shutdown signal received, stopping bot...")
        final = client.stop_volume_bot()
        log.info(json.dumps({"event": "final_stats", **final["stats"].to_dict()}))
        return 0
    except PerpBotError as exc:
        log.error(json.dumps({"event": "fatal", "error": str(exc), "type": type(exc).__name__}))
        return 1
    finally:
        await client.close()
        event_bus.stop()
        await event_bus.drain()
        bus_task.cancel()
        await asyncio.gather(bus_task, return_exceptions=True)
        log.info("Shutdown complete")


def main() -> None:
    cfg = Settings.load()
    build_logger("perpbot", logging.DEBUG if cfg.log_debug else logging.INFO, file_path=cfg.log_file)

    if not validate_and_log(cfg, log):
        log.error("Configuration validation failed, exiting")
        sys.exit(1)

    try:
        code = asyncio.run(run(cfg))
    except KeyboardInterrupt:
        print("\nBot stopped by user")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
