"""
Ephemeral ed25519 identity used to sign request payloads.

The keypair lives only in memory for the lifetime of one client. Its public
key, base58-encoded, is the ``requestId`` registered with the venue during
sign-in; the venue then verifies request signatures against it.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field

import base58
from nacl.signing import SigningKey


@dataclass(frozen=True)
class SigningIdentity:
    signing_key: bytes = field(repr=False)
    verifying_key: bytes

    @classmethod
    def generate(cls) -> "SigningIdentity":
        key = SigningKey.generate()
        return cls(signing_key=bytes(key), verifying_key=bytes(key.verify_key))

    @classmethod
    def from_seed(cls, seed: bytes) -> "SigningIdentity":
        key = SigningKey(seed)
        return cls(signing_key=bytes(key), verifying_key=bytes(key.verify_key))

    @property
    def request_id(self) -> str:
        return base58.b58encode(self.verifying_key).decode("ascii")

    def sign(self, message: bytes) -> bytes:
        """Detached 64-byte ed25519 signature over ``message``."""
        return SigningKey(self.signing_key).sign(message).signature

    def sign_b64(self, message: str) -> str:
        return base64.b64encode(self.sign(message.encode("utf-8"))).decode("ascii")
