"""
Async wrapper around blocking web3 calls using a small shared thread pool.

Covers what the swap flow needs from the chain: ERC-20 balance, decimals,
allowance and approve, plus signing, broadcasting and awaiting raw
transactions.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from web3 import Web3

from perpbot.auth.wallet import WalletSigner

MAX_UINT256 = 2**256 - 1

ERC20_ABI = [
    {
        "name": "balanceOf", "type": "function", "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "decimals", "type": "function", "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "name": "allowance", "type": "function", "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve", "type": "function", "stateMutability": "nonpayable",
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


class ChainGateway:
    def __init__(
        self,
        rpc_url: str,
        wallet: WalletSigner,
        timeout: float = 30.0,
        receipt_timeout: float = 180.0,
        w3: Optional[Web3] = None,
        max_workers: int = 2,
    ) -> None:
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.wallet = wallet
        self.receipt_timeout = receipt_timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="chain-rpc")

    @property
    def address(self) -> str:
        return self.wallet.address

    async def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    async def _call(self, fn) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn)

    def _token(self, token_address: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)

    async def token_balance(self, token_address: str, owner: Optional[str] = None) -> Dict[str, int]:
        contract = self._token(token_address)
        holder = Web3.to_checksum_address(owner or self.address)
        balance = await self._call(lambda: contract.functions.balanceOf(holder).call())
        decimals = await self._call(lambda: contract.functions.decimals().call())
        return {"balance": int(balance), "decimals": int(decimals)}

    async def allowance(self, token_address: str, spender: str, owner: Optional[str] = None) -> int:
        contract = self._token(token_address)
        holder = Web3.to_checksum_address(owner or self.address)
        return int(await self._call(
            lambda: contract.functions.allowance(holder, Web3.to_checksum_address(spender)).call()
        ))

    async def approve(self, token_address: str, spender: str, amount: int = MAX_UINT256) -> str:
        contract = self._token(token_address)

        def build() -> Dict[str, Any]:
            return contract.functions.approve(Web3.to_checksum_address(spender), amount).build_transaction({
                "from": self.address,
                "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
            })

        tx = await self._call(build)
        return await self.send_transaction(tx)

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        """Fill missing defaults, sign with the wallet key and broadcast. Returns the tx hash."""

        def sign_and_send() -> str:
            full = dict(tx)
            if full.get("to"):
                full["to"] = Web3.to_checksum_address(full["to"])
            full.setdefault("from", self.address)
            full.setdefault("value", 0)
            full.setdefault("chainId", self.w3.eth.chain_id)
            if "nonce" not in full:
                full["nonce"] = self.w3.eth.get_transaction_count(self.address, "pending")
            if "gasPrice" not in full and "maxFeePerGas" not in full:
                full["gasPrice"] = self.w3.eth.gas_price
            signed = self.wallet.account.sign_transaction(full)
            # eth-account renamed rawTransaction to raw_transaction
            raw = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
            return Web3.to_hex(self.w3.eth.send_raw_transaction(raw))

        return await self._call(sign_and_send)

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        receipt = await self._call(
            lambda: self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        )
        return dict(receipt)
