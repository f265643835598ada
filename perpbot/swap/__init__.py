"""
Swap package.

This package contains the token registry, the aggregator quote client, the
web3 chain gateway and the quote -> approve -> swap orchestrator.
"""

from perpbot.swap.tokens import TOKENS, Token, format_units, to_base_units
from perpbot.swap.quote_service import Quote, SushiQuoteService, SwapTx
from perpbot.swap.chain import ChainGateway
from perpbot.swap.swap_orchestrator import SwapOrchestrator

__all__ = [
    "TOKENS",
    "Token",
    "format_units",
    "to_base_units",
    "Quote",
    "SushiQuoteService",
    "SwapTx",
    "ChainGateway",
    "SwapOrchestrator",
]
