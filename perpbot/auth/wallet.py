"""
Wallet key handling for the sign-in handshake.

The wallet key is distinct from the ephemeral request-signing key: it only
signs the venue's challenge message (EIP-191 personal message) and, for
swaps, on-chain transactions.
"""

from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct

from perpbot.core.errors import SigningError


def normalize_private_key(private_key: str | None) -> str:
    if not private_key or not str(private_key).strip():
        raise SigningError("Private key not set")
    pk = str(private_key).strip()
    if not pk.startswith("0x"):
        pk = "0x" + pk
    return pk


class WalletSigner:
    """Wraps an eth_account LocalAccount built from a hex private key."""

    def __init__(self, private_key: str | None) -> None:
        pk = normalize_private_key(private_key)
        try:
            self._account = Account.from_key(pk)
        except Exception as exc:  # eth_keys raises its own ValidationError for bad lengths
            raise SigningError(f"Malformed wallet private key: {exc}") from exc

    @property
    def address(self) -> str:
        """EIP-55 checksummed address."""
        return self._account.address

    @property
    def account(self):
        return self._account

    def sign_message(self, message: str) -> str:
        """Personal-message signature as a 0x-prefixed hex string."""
        signed = self._account.sign_message(encode_defunct(text=message))
        sig = signed.signature.hex()
        return sig if sig.startswith("0x") else "0x" + sig
