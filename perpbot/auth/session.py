"""
Session authentication: exchange a wallet signature for a bearer token.

Handshake (each step aborts the whole sign-in on failure):

1. prepare   POST {auth}/v1/offchain/prepare-signin?chain=..  {address, requestId}
             -> {success, signedData}
2. sign      decode the challenge ``message`` from the signedData compact
             token and sign it with the wallet key (personal message)
3. login     POST {auth}/v1/offchain/login?chain=..  {signature, signedData}
             -> {token, address, ...}

The authenticator never mutates an existing session; a new Session is
returned only when all three steps succeeded.
"""

from __future__ import annotations

import base64
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from perpbot.auth.signing import SigningIdentity
from perpbot.auth.wallet import WalletSigner
from perpbot.core.errors import (
    LoginFailed,
    PrepareFailed,
    SignFailed,
    SigningError,
    VenueError,
)
from perpbot.execution.venue_http import VenueHttp
from perpbot.infra.logging_cfg import log_event

log = logging.getLogger("perpbot")


@dataclass
class Session:
    wallet_address: str
    chain: str = "bsc"
    bearer_token: Optional[str] = field(default=None, repr=False)
    session_id: Optional[str] = None
    profile: Dict[str, Any] = field(default_factory=dict)

    @property
    def authenticated(self) -> bool:
        return bool(self.bearer_token)

    def ensure_session_id(self) -> str:
        """Generated on first use, stable afterwards."""
        if not self.session_id:
            self.session_id = f"session-{uuid.uuid4()}"
        return self.session_id


def decode_signed_data(token: str) -> Dict[str, Any]:
    """Decode the JSON payload (middle segment) of a three-part compact token."""
    parts = token.split(".") if isinstance(token, str) else []
    if len(parts) != 3 or not parts[1]:
        raise ValueError("signedData is not a three-part compact token")
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    payload = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")).decode("utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("signedData payload is not a JSON object")
    return payload


class SessionAuthenticator:
    def __init__(
        self,
        http: VenueHttp,
        identity: SigningIdentity,
        auth_url: str = "https://api.standx.com",
        chain: str = "bsc",
    ) -> None:
        self.http = http
        self.identity = identity
        self.auth_url = auth_url.rstrip("/")
        self.chain = chain

    async def authenticate(self, private_key: str | None, wallet_address: str | None = None) -> Session:
        """Run the full handshake.

        ``wallet_address`` is informational only: the session always uses the
        checksummed address derived from ``private_key``.
        """
        try:
            wallet = WalletSigner(private_key)
        except SigningError as exc:
            log_event(log, "auth_failed", logging.ERROR, stage="sign", error=str(exc))
            raise SignFailed(str(exc)) from exc

        address = wallet.address
        if wallet_address and wallet_address.lower() != address.lower():
            log_event(
                log, "auth_address_mismatch", logging.WARNING,
                supplied=wallet_address, derived=address,
            )
        log_event(log, "auth_prepare", address=address, request_id=self.identity.request_id[:8])

        signed_data = await self.prepare_sign_in(address)

        try:
            message = decode_signed_data(signed_data)["message"]
            if not isinstance(message, str):
                raise ValueError("challenge message is not a string")
        except (ValueError, KeyError, UnicodeDecodeError) as exc:
            log_event(log, "auth_failed", logging.ERROR, stage="sign", error=str(exc))
            raise SignFailed(f"Malformed signedData: {exc}") from exc

        signature = wallet.sign_message(message)
        login = await self.login(signature, signed_data)

        session = Session(
            wallet_address=address,
            chain=self.chain,
            bearer_token=login["token"],
            profile={k: v for k, v in login.items() if k != "token"},
        )
        log_event(log, "auth_completed", address=address, chain=self.chain)
        return session

    async def prepare_sign_in(self, address: str) -> str:
        url = f"{self.auth_url}/v1/offchain/prepare-signin"
        body = {"address": address, "requestId": self.identity.request_id}
        try:
            data = await self.http.post(url, body, params={"chain": self.chain}, stage="prepare")
        except VenueError as exc:
            log_event(log, "auth_failed", logging.ERROR, stage="prepare", error=exc.message)
            raise PrepareFailed(f"Failed to prepare sign-in: {exc.message}", detail=exc.detail) from exc

        if not isinstance(data, dict) or not data.get("success") or not data.get("signedData"):
            log_event(log, "auth_failed", logging.ERROR, stage="prepare", error="no signedData")
            raise PrepareFailed(detail=data)
        return data["signedData"]

    async def login(self, signature: str, signed_data: str) -> Dict[str, Any]:
        url = f"{self.auth_url}/v1/offchain/login"
        body = {"signature": signature, "signedData": signed_data}
        try:
            data = await self.http.post(url, body, params={"chain": self.chain}, stage="login")
        except VenueError as exc:
            log_event(log, "auth_failed", logging.ERROR, stage="login", error=exc.message)
            raise LoginFailed(f"Login rejected: {exc.message}", detail=exc.detail) from exc

        if not isinstance(data, dict) or not isinstance(data.get("token"), str) or not data["token"]:
            log_event(log, "auth_failed", logging.ERROR, stage="login", error="malformed response")
            raise LoginFailed("Malformed login response", detail=data)
        return data
