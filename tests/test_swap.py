"""
Tests for the swap flow.

Tests cover:
- Token unit conversions
- Quote / swap-calldata service against a stubbed aggregator
- Orchestrator sequencing: allowance skip vs approve, gas default, revert
- ChainGateway transaction filling over a mocked web3
"""

from typing import Any, Dict, List
from unittest.mock import MagicMock

import httpx
import pytest

from perpbot.auth.wallet import WalletSigner
from perpbot.core.errors import SwapError
from perpbot.core.event_bus import EventBus, EventType
from perpbot.swap.chain import MAX_UINT256, ChainGateway
from perpbot.swap.quote_service import SushiQuoteService
from perpbot.swap.swap_orchestrator import DEFAULT_SWAP_GAS, SwapOrchestrator
from perpbot.swap.tokens import BSC_EXPLORER_TX, SUSHI_ROUTER, TOKENS, format_units, to_base_units

from conftest import RecordingHandler, TEST_ADDRESS, TEST_PRIVATE_KEY, make_http

QUOTE_PATH = "/quote/v7/56"
SWAP_PATH = "/swap/v7/56"
TX_HASH = "0x" + "ab" * 32


def quote_ok(amount_out="99500000000000000000"):
    return {"status": "Success", "assumedAmountOut": amount_out, "priceImpact": 0.0012, "gasSpent": 150000}


def swap_ok(gas="0x3d090"):
    return {
        "status": "Success",
        "tx": {"to": SUSHI_ROUTER, "data": "0xdeadbeef", "gas": gas, "gasPrice": 1_000_000_000},
    }


class FakeChain:
    """Hand-written stand-in for ChainGateway."""

    def __init__(self, allowance: int = 0, receipt_status: int = 1):
        self.address = TEST_ADDRESS
        self._allowance = allowance
        self.receipt_status = receipt_status
        self.approvals: List[tuple] = []
        self.sent: List[Dict[str, Any]] = []
        self.balances = {TOKENS["DUSD"].address: (123_450_000, 6)}

    async def token_balance(self, token_address, owner=None):
        balance, decimals = self.balances[token_address]
        return {"balance": balance, "decimals": decimals}

    async def allowance(self, token_address, spender, owner=None):
        return self._allowance

    async def approve(self, token_address, spender, amount=MAX_UINT256):
        self.approvals.append((token_address, spender, amount))
        self._allowance = amount
        return "0x" + "01" * 32

    async def send_transaction(self, tx):
        self.sent.append(tx)
        return TX_HASH

    async def wait_for_receipt(self, tx_hash):
        status = 1 if tx_hash != TX_HASH else self.receipt_status
        return {"status": status, "transactionHash": tx_hash}

    async def close(self, wait=True):
        pass


def _orchestrator(routes, chain=None, event_bus=None):
    service = SushiQuoteService(make_http(RecordingHandler(routes)), base_url="https://sushi.example.test")
    return SwapOrchestrator(service, chain or FakeChain(), event_bus=event_bus)


class TestTokens:
    def test_to_base_units(self):
        assert to_base_units("100", 6) == 100_000_000
        assert to_base_units(1.5, 18) == 1_500_000_000_000_000_000

    @pytest.mark.parametrize("amount", ["0", "-1", "abc", "0.0000001"])
    def test_to_base_units_rejects(self, amount):
        with pytest.raises(ValueError):
            to_base_units(amount, 6)

    def test_format_units(self):
        assert format_units(123_450_000, 6) == "123.45"
        assert format_units(0, 18) == "0"


class TestQuoteService:
    @pytest.mark.asyncio
    async def test_quote(self):
        handler = RecordingHandler({QUOTE_PATH: quote_ok()})
        service = SushiQuoteService(make_http(handler), base_url="https://sushi.example.test")
        quote = await service.quote(TOKENS["DUSD"], TOKENS["USDT"], 100_000_000)

        assert quote.amount_out == 99_500_000_000_000_000_000
        assert quote.amount_out_formatted == "99.5"
        assert quote.price_impact == 0.0012
        assert quote.gas_estimate == 150000
        params = handler.last(QUOTE_PATH).url.params
        assert params["tokenIn"] == TOKENS["DUSD"].address
        assert params["amount"] == "100000000"

    @pytest.mark.asyncio
    async def test_quote_non_success_status(self):
        service = SushiQuoteService(make_http(RecordingHandler({QUOTE_PATH: {"status": "NoWay"}})))
        with pytest.raises(SwapError) as exc_info:
            await service.quote(TOKENS["DUSD"], TOKENS["USDT"], 1)
        assert exc_info.value.stage == "quote"

    @pytest.mark.asyncio
    async def test_swap_tx_hex_gas(self):
        handler = RecordingHandler({SWAP_PATH: swap_ok()})
        service = SushiQuoteService(make_http(handler))
        tx = await service.build_swap_tx(TOKENS["DUSD"], TOKENS["USDT"], 1, TEST_ADDRESS)
        assert tx.gas == 250000
        assert tx.gas_price == 1_000_000_000
        assert handler.last(SWAP_PATH).url.params["sender"] == TEST_ADDRESS

    @pytest.mark.asyncio
    async def test_swap_empty_calldata(self):
        routes = {SWAP_PATH: {"status": "Success", "tx": {"to": SUSHI_ROUTER, "data": ""}}}
        service = SushiQuoteService(make_http(RecordingHandler(routes)))
        with pytest.raises(SwapError) as exc_info:
            await service.build_swap_tx(TOKENS["DUSD"], TOKENS["USDT"], 1, TEST_ADDRESS)
        assert exc_info.value.stage == "swap"

    @pytest.mark.asyncio
    async def test_http_failure_becomes_swap_error(self):
        routes = {QUOTE_PATH: httpx.Response(503, text="unavailable")}
        service = SushiQuoteService(make_http(RecordingHandler(routes)))
        with pytest.raises(SwapError):
            await service.quote(TOKENS["DUSD"], TOKENS["USDT"], 1)


class TestSwapOrchestrator:
    @pytest.mark.asyncio
    async def test_execute_swap_with_approval(self):
        chain = FakeChain(allowance=0)
        bus = EventBus()
        result = await _orchestrator({QUOTE_PATH: quote_ok(), SWAP_PATH: swap_ok()}, chain, bus).execute_swap(
            "DUSD", "USDT", "100"
        )

        assert result == {
            "success": True,
            "tx_hash": TX_HASH,
            "amount_in": "100",
            "amount_out": "99.5",
            "price_impact": 0.0012,
            "explorer_url": f"{BSC_EXPLORER_TX}{TX_HASH}",
        }
        assert chain.approvals == [(TOKENS["DUSD"].address, SUSHI_ROUTER, MAX_UINT256)]
        assert chain.sent == [{"to": SUSHI_ROUTER, "data": "0xdeadbeef", "gas": 250000, "gasPrice": 1_000_000_000}]
        await bus.drain()
        assert bus.get_history(EventType.SWAP_COMPLETED)[0].data["tx_hash"] == TX_HASH

    @pytest.mark.asyncio
    async def test_sufficient_allowance_skips_approve(self):
        chain = FakeChain(allowance=MAX_UINT256)
        await _orchestrator({QUOTE_PATH: quote_ok(), SWAP_PATH: swap_ok()}, chain).execute_swap("DUSD", "USDT", 1)
        assert chain.approvals == []

    @pytest.mark.asyncio
    async def test_gas_defaults_when_service_omits_it(self):
        chain = FakeChain(allowance=MAX_UINT256)
        routes = {QUOTE_PATH: quote_ok(), SWAP_PATH: {"status": "Success", "tx": {"to": SUSHI_ROUTER, "data": "0x01"}}}
        await _orchestrator(routes, chain).execute_swap("DUSD", "USDT", 1)
        assert chain.sent[0]["gas"] == DEFAULT_SWAP_GAS
        assert "gasPrice" not in chain.sent[0]

    @pytest.mark.asyncio
    async def test_reverted_swap(self):
        chain = FakeChain(allowance=MAX_UINT256, receipt_status=0)
        with pytest.raises(SwapError) as exc_info:
            await _orchestrator({QUOTE_PATH: quote_ok(), SWAP_PATH: swap_ok()}, chain).execute_swap("DUSD", "USDT", 1)
        assert exc_info.value.stage == "confirm"
        assert exc_info.value.tx_hash == TX_HASH
        assert BSC_EXPLORER_TX in exc_info.value.message

    @pytest.mark.asyncio
    async def test_quote_failure_stops_before_chain(self):
        chain = FakeChain()
        with pytest.raises(SwapError):
            await _orchestrator({QUOTE_PATH: {"status": "Error"}}, chain).execute_swap("DUSD", "USDT", 1)
        assert chain.approvals == [] and chain.sent == []

    @pytest.mark.asyncio
    async def test_token_balance(self):
        balance = await _orchestrator({}).token_balance("dusd")
        assert balance == {"token": "DUSD", "balance": 123_450_000, "decimals": 6, "formatted": "123.45"}

    def test_unknown_token(self):
        with pytest.raises(ValueError):
            _orchestrator({}).resolve("DOGE")


class TestChainGateway:
    def _gateway(self):
        w3 = MagicMock()
        w3.eth.chain_id = 56
        w3.eth.gas_price = 3_000_000_000
        w3.eth.get_transaction_count.return_value = 7
        w3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)
        return ChainGateway("http://rpc.invalid", WalletSigner(TEST_PRIVATE_KEY), w3=w3), w3

    @pytest.mark.asyncio
    async def test_send_transaction_fills_defaults(self):
        gateway, w3 = self._gateway()
        tx_hash = await gateway.send_transaction({"to": SUSHI_ROUTER, "data": "0xdeadbeef", "gas": 500000})
        await gateway.close()

        assert tx_hash == TX_HASH
        w3.eth.get_transaction_count.assert_called_once_with(TEST_ADDRESS, "pending")
        raw = w3.eth.send_raw_transaction.call_args.args[0]
        assert isinstance(raw, (bytes, bytearray)) and len(raw) > 0

    @pytest.mark.asyncio
    async def test_token_balance(self):
        gateway, w3 = self._gateway()
        functions = w3.eth.contract.return_value.functions
        functions.balanceOf.return_value.call.return_value = 5_000_000
        functions.decimals.return_value.call.return_value = 6
        assert await gateway.token_balance(TOKENS["DUSD"].address) == {"balance": 5_000_000, "decimals": 6}
        functions.balanceOf.assert_called_once_with(TEST_ADDRESS)
        await gateway.close()
