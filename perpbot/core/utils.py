"""
Utility helpers.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


def to_decimal_str(value: Any) -> str:
    """Render a quantity or price as a plain decimal string.

    Floats go through ``repr`` so 0.1 stays "0.1" instead of the binary
    expansion; Decimal inputs never switch to exponent notation.
    """
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("empty decimal string")
        dec = Decimal(value)
    elif isinstance(value, Decimal):
        dec = value
    elif isinstance(value, bool):
        raise TypeError("bool is not a quantity")
    elif isinstance(value, (int, float)):
        dec = Decimal(repr(value))
    else:
        raise TypeError(f"unsupported decimal value: {type(value).__name__}")
    text = format(dec, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def round_fixed(value: float, places: int) -> str:
    """Half-up rounding to a fixed number of places, returned as a string."""
    quant = Decimal(1).scaleb(-places)
    return format(Decimal(repr(value)).quantize(quant, rounding=ROUND_HALF_UP), "f")


def parse_ts_ms(value: Any) -> Optional[int]:
    """Parse an ISO-8601 string or epoch number into epoch milliseconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        # treat small numbers as seconds
        return int(value * 1000) if value < 1e11 else int(value)
    text = str(value).strip()
    if text.isdigit():
        return parse_ts_ms(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
