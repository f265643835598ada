"""
Execution package.

This package contains the venue HTTP transport and the trading client.
"""

from perpbot.execution.venue_http import VenueHttp, dumps_body
from perpbot.execution.trading_client import OrderRequest, TradingClient, opposite_side

__all__ = [
    "VenueHttp",
    "dumps_body",
    "OrderRequest",
    "TradingClient",
    "opposite_side",
]
