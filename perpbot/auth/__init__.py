"""
Authentication package.

This package contains the ephemeral request-signing identity, the wallet
signer, the sign-in handshake and per-request authorization headers.
"""

from perpbot.auth.signing import SigningIdentity
from perpbot.auth.wallet import WalletSigner
from perpbot.auth.session import Session, SessionAuthenticator, decode_signed_data
from perpbot.auth.authorizer import RequestAuthorizer

__all__ = [
    "SigningIdentity",
    "WalletSigner",
    "Session",
    "SessionAuthenticator",
    "decode_signed_data",
    "RequestAuthorizer",
]
