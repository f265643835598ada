"""
Error taxonomy for venue access, authentication and the volume bot.

Every failure carries the stage it happened in (prepare / sign / login /
order / cancel / ...) so callers can report which step broke, and the
verbatim venue payload when one was returned.
"""

from __future__ import annotations

from typing import Any, Optional


class PerpBotError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str, stage: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.detail = detail

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthError(PerpBotError):
    """Any failure of the sign-in handshake. Never retried automatically."""


class PrepareFailed(AuthError):
    def __init__(self, message: str = "Failed to prepare sign-in", detail: Any = None) -> None:
        super().__init__(message, stage="prepare", detail=detail)


class SignFailed(AuthError):
    def __init__(self, message: str = "Failed to sign challenge message", detail: Any = None) -> None:
        super().__init__(message, stage="sign", detail=detail)


class LoginFailed(AuthError):
    def __init__(self, message: str = "Login rejected", detail: Any = None) -> None:
        super().__init__(message, stage="login", detail=detail)


class SigningError(PerpBotError):
    """Missing or malformed wallet private key."""

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="sign")


class NotAuthenticated(PerpBotError):
    def __init__(self, message: str = "Not authenticated; call authenticate() first") -> None:
        super().__init__(message, stage="auth")


class SessionBusy(PerpBotError):
    """Re-authentication attempted while the volume bot is running."""

    def __init__(self, message: str = "Stop the volume bot before re-authenticating") -> None:
        super().__init__(message, stage="auth")


# ---------------------------------------------------------------------------
# Venue access
# ---------------------------------------------------------------------------


class VenueError(PerpBotError):
    """Non-2xx status or an explicit ``success: false`` from the venue."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message, stage=stage, detail=detail)
        self.status_code = status_code


class NetworkError(VenueError):
    """Timeout or connection failure; surfaced like any other venue failure."""


# ---------------------------------------------------------------------------
# Bot lifecycle
# ---------------------------------------------------------------------------


class ValidationError(PerpBotError):
    """Bad bot configuration, rejected before the loop starts."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, stage="validate")
        self.field = field


class MinSizeTooSmall(ValidationError):
    def __init__(self, min_size: float, venue_min: float) -> None:
        super().__init__(
            f"Minimum size {min_size} is below the venue minimum order quantity {venue_min}",
            field="min_size",
        )
        self.min_size = min_size
        self.venue_min = venue_min


class AlreadyRunning(PerpBotError):
    def __init__(self, message: str = "Volume bot is already running") -> None:
        super().__init__(message, stage="start")


# ---------------------------------------------------------------------------
# Swap
# ---------------------------------------------------------------------------


class SwapError(PerpBotError):
    """Failure in the quote / approve / swap / confirm sequence."""

    def __init__(self, message: str, stage: str, detail: Any = None, tx_hash: Optional[str] = None) -> None:
        super().__init__(message, stage=stage, detail=detail)
        self.tx_hash = tx_hash
