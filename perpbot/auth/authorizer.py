"""
Per-request authorization headers.

Read requests carry the bearer token and session id. Write requests also
carry two ed25519 signatures over the exact JSON body that is sent:

    x-request-signature  sign("v1,<x-request-id>,<x-request-timestamp>,<body>")
    x-body-signature     sign("<body>")

The first binds the body to a fresh request id and timestamp so a captured
request cannot be replayed as a different one.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable, Dict, Optional, TYPE_CHECKING

from perpbot.auth.signing import SigningIdentity

if TYPE_CHECKING:
    from perpbot.auth.session import Session

SIGN_VERSION = "v1"


def versioned_message(body: str, request_id: str, timestamp: str, version: str = SIGN_VERSION) -> str:
    return f"{version},{request_id},{timestamp},{body}"


class RequestAuthorizer:
    def __init__(
        self,
        identity: SigningIdentity,
        session: Optional[Session] = None,
        time_ms: Callable[[], int] = lambda: int(time.time() * 1000),
        new_request_id: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.identity = identity
        self.session = session
        self._time_ms = time_ms
        self._new_request_id = new_request_id
        # once issued, the id is reused by every session bound afterwards
        self._session_id: Optional[str] = None

    def bind(self, session: Session) -> None:
        """Attach a freshly authenticated session, keeping any session id already issued."""
        issued = self._session_id or (self.session.session_id if self.session is not None else None)
        if issued:
            self._session_id = issued
            session.session_id = issued
        self.session = session

    def session_id(self) -> str:
        if not self._session_id:
            if self.session is not None:
                self._session_id = self.session.ensure_session_id()
            else:
                self._session_id = f"session-{uuid.uuid4()}"
        return self._session_id

    def headers(self, body: Optional[str] = None) -> Dict[str, str]:
        """Headers for one request. Pass the serialized body for write requests."""
        headers = {"Content-Type": "application/json"}
        if self.session is not None and self.session.bearer_token:
            headers["Authorization"] = f"Bearer {self.session.bearer_token}"
        headers["x-session-id"] = self.session_id()

        if body is not None:
            request_id = self._new_request_id()
            timestamp = str(self._time_ms())
            headers["x-request-sign-version"] = SIGN_VERSION
            headers["x-request-id"] = request_id
            headers["x-request-timestamp"] = timestamp
            headers["x-request-signature"] = self.identity.sign_b64(
                versioned_message(body, request_id, timestamp)
            )
            headers["x-body-signature"] = self.identity.sign_b64(body)
        return headers
