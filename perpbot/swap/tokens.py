"""Token registry and base-unit conversions for BSC swaps."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

BSC_CHAIN_ID = 56
BSC_EXPLORER_TX = "https://bscscan.com/tx/"

# SushiSwap route processor and the pools quotes are restricted to
SUSHI_ROUTER = "0xac4c6e212a361c968f1725b4d055b47e63f80b75"
SUSHI_POOLS = ",".join([
    "0xb67e5eaf770a384ab28029d08b9bc5ebe32beb0f",
    "0xf26de996845fb1e07f33af3c7f02b084965d6dde",
    "0x2ad9c1ad5b06f953b69d39d6685d725cd330b9c5",
    "0x15beac740434402f788345a4ae8f34dac2cd59ed",
])


@dataclass(frozen=True)
class Token:
    symbol: str
    address: str
    decimals: int


TOKENS: Dict[str, Token] = {
    "DUSD": Token("DUSD", "0xaf44A1E76F56eE12ADBB7ba8acD3CbD474888122", 6),
    "USDT": Token("USDT", "0x55d398326f99059fF775485246999027B3197955", 18),
}


def to_base_units(amount: Any, decimals: int) -> int:
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {amount!r}") from exc
    if value <= 0:
        raise ValueError("amount must be > 0")
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"amount {amount} has more than {decimals} decimals")
    return int(scaled)


def format_units(value: int, decimals: int) -> str:
    text = format(Decimal(int(value)).scaleb(-decimals), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
