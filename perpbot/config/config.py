"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("perpbot")


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    perps_url: str
    auth_url: str
    chain: str
    private_key: str | None
    wallet_address: str | None
    http_timeout: float
    # Volume bot
    symbol: str
    min_size: float
    max_size: float
    interval_min_sec: float
    interval_max_sec: float
    price_variance: float
    leverage: int  # 0 = leave venue leverage untouched
    # Swap
    rpc_url: str
    swap_api_url: str
    swap_max_slippage: float
    # Operational
    settings_file: str
    metrics_port: int  # 0 = metrics server disabled
    log_file: str | None
    log_debug: bool

    def dump(self) -> dict:
        """Return a dict of settings for logging, with the private key masked."""
        data = self.__dict__.copy()
        if data.get("private_key"):
            data["private_key"] = "***"
        return data

    @classmethod
    def load(cls) -> "Settings":
        def _int_env(key: str, default: int) -> int:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return int(raw)

        def _float_env(key: str, default: float) -> float:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return float(raw)

        cfg = cls(
            perps_url=os.getenv("PB_PERPS_URL", "https://perps.standx.com"),
            auth_url=os.getenv("PB_AUTH_URL", "https://api.standx.com"),
            chain=os.getenv("PB_CHAIN", "bsc"),
            private_key=os.getenv("PB_PRIVATE_KEY") or None,
            wallet_address=os.getenv("PB_WALLET_ADDRESS") or None,
            http_timeout=_float_env("PB_HTTP_TIMEOUT", 30.0),
            symbol=os.getenv("PB_SYMBOL", "BTC-USD"),
            min_size=_float_env("PB_MIN_SIZE", 0.001),
            max_size=_float_env("PB_MAX_SIZE", 0.01),
            interval_min_sec=_float_env("PB_INTERVAL_MIN_SEC", 10.0),
            interval_max_sec=_float_env("PB_INTERVAL_MAX_SEC", 30.0),
            price_variance=_float_env("PB_PRICE_VARIANCE", 0.001),
            leverage=_int_env("PB_LEVERAGE", 0),
            rpc_url=os.getenv("PB_BSC_RPC_URL", "https://bsc-dataseed.binance.org/"),
            swap_api_url=os.getenv("PB_SWAP_API_URL", "https://api.sushi.com"),
            swap_max_slippage=_float_env("PB_SWAP_MAX_SLIPPAGE", 0.01),
            settings_file=os.getenv("PB_SETTINGS_FILE", "config.yaml"),
            metrics_port=_int_env("PB_METRICS_PORT", 0),
            log_file=os.getenv("PB_LOG_FILE", "perpbot.log") or None,
            log_debug=env_bool("PB_LOG_DEBUG", False),
        )
        _sanity_check(cfg)
        cfg._validate()
        return cfg

    def resolve_account(self) -> str:
        """Checksummed wallet address derived from the private key."""
        if self.private_key:
            from perpbot.auth.wallet import WalletSigner

            return WalletSigner(self.private_key).address
        if self.wallet_address:
            from eth_utils import to_checksum_address

            return to_checksum_address(self.wallet_address)
        raise RuntimeError("Missing PB_PRIVATE_KEY or PB_WALLET_ADDRESS")

    def _validate(self) -> None:
        if self.http_timeout <= 0:
            raise ValueError("PB_HTTP_TIMEOUT must be > 0")
        if self.min_size <= 0:
            raise ValueError("PB_MIN_SIZE must be > 0")
        if self.min_size > self.max_size:
            raise ValueError("PB_MIN_SIZE must be <= PB_MAX_SIZE")
        if self.interval_min_sec < 0:
            raise ValueError("PB_INTERVAL_MIN_SEC must be >= 0")
        if self.interval_min_sec > self.interval_max_sec:
            raise ValueError("PB_INTERVAL_MIN_SEC must be <= PB_INTERVAL_MAX_SEC")
        if not 0 <= self.price_variance < 1:
            raise ValueError("PB_PRICE_VARIANCE must be in [0, 1)")
        if self.leverage < 0:
            raise ValueError("PB_LEVERAGE must be >= 0")

        if self.interval_min_sec < 1.0:
            log.warning(
                f"WARNING: PB_INTERVAL_MIN_SEC is {self.interval_min_sec}s. "
                "Very short intervals risk venue rate limits."
            )


def _sanity_check(cfg: Settings) -> None:
    """Log critical settings once at startup so overrides are obvious."""
    payload = {
        "event": "config_loaded",
        "perps_url": cfg.perps_url,
        "chain": cfg.chain,
        "symbol": cfg.symbol,
        "size_range": [cfg.min_size, cfg.max_size],
        "interval_range": [cfg.interval_min_sec, cfg.interval_max_sec],
        "has_private_key": bool(cfg.private_key),
    }
    log.info(json.dumps(payload))
