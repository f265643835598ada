"""
Core utilities package.

This package contains the error taxonomy, the event bus and common helpers.
"""

from perpbot.core.errors import PerpBotError
from perpbot.core.event_bus import EventBus, EventType, Event, Subscription
from perpbot.core.utils import now_ms, to_decimal_str, round_fixed, parse_ts_ms

__all__ = [
    "PerpBotError",
    "EventBus",
    "EventType",
    "Event",
    "Subscription",
    "now_ms",
    "to_decimal_str",
    "round_fixed",
    "parse_ts_ms",
]
