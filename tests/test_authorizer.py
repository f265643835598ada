"""
Tests for per-request authorization headers.

Tests cover:
- Read headers (bearer + session id, no signatures)
- Write headers (both ed25519 signatures over the exact body)
- Replay resistance: request id / timestamp bound into the signature
- Session id stability across bind()
"""

import base64

import pytest
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from perpbot.auth.authorizer import RequestAuthorizer, versioned_message
from perpbot.auth.session import Session

BODY = '{"symbol":"BTC-USD","side":"buy","order_type":"limit","qty":"0.01","price":"50000"}'


def _verify(identity, message: str, signature_b64: str) -> None:
    VerifyKey(identity.verifying_key).verify(message.encode(), base64.b64decode(signature_b64))


def _authorizer(identity, session=None, ts=1_700_000_000_000, request_id="req-1"):
    return RequestAuthorizer(identity, session=session, time_ms=lambda: ts, new_request_id=lambda: request_id)


class TestReadHeaders:
    def test_unauthenticated_has_session_id_only(self, identity):
        headers = _authorizer(identity).headers()
        assert "Authorization" not in headers
        assert headers["x-session-id"].startswith("session-")
        assert "x-request-signature" not in headers

    def test_bearer_token_attached(self, identity):
        session = Session(wallet_address="0xabc", bearer_token="tok")
        headers = _authorizer(identity, session).headers()
        assert headers["Authorization"] == "Bearer tok"
        assert headers["Content-Type"] == "application/json"


class TestWriteHeaders:
    def test_signatures_verify(self, identity):
        headers = _authorizer(identity).headers(BODY)
        assert headers["x-request-sign-version"] == "v1"
        assert headers["x-request-id"] == "req-1"
        assert headers["x-request-timestamp"] == "1700000000000"
        _verify(identity, f"v1,req-1,1700000000000,{BODY}", headers["x-request-signature"])
        _verify(identity, BODY, headers["x-body-signature"])

    def test_versioned_message_format(self):
        assert versioned_message("{}", "id", "123") == "v1,id,123,{}"

    def test_one_character_change_changes_both_signatures(self, identity):
        auth = _authorizer(identity)
        a = auth.headers(BODY)
        b = auth.headers(BODY.replace("0.01", "0.02"))
        assert a["x-request-signature"] != b["x-request-signature"]
        assert a["x-body-signature"] != b["x-body-signature"]

    def test_request_id_and_timestamp_bound_into_signature(self, identity):
        base = _authorizer(identity).headers(BODY)
        other_id = _authorizer(identity, request_id="req-2").headers(BODY)
        other_ts = _authorizer(identity, ts=1_700_000_000_001).headers(BODY)
        assert base["x-request-signature"] != other_id["x-request-signature"]
        assert base["x-request-signature"] != other_ts["x-request-signature"]
        # the plain body signature does not depend on either
        assert base["x-body-signature"] == other_id["x-body-signature"] == other_ts["x-body-signature"]

    def test_signature_rejects_tampered_body(self, identity):
        headers = _authorizer(identity).headers(BODY)
        with pytest.raises(BadSignatureError):
            _verify(identity, BODY + " ", headers["x-body-signature"])

    def test_default_request_ids_are_unique(self, identity):
        auth = RequestAuthorizer(identity)
        assert auth.headers(BODY)["x-request-id"] != auth.headers(BODY)["x-request-id"]


class TestSessionId:
    def test_stable_across_calls(self, identity):
        auth = _authorizer(identity)
        assert auth.headers()["x-session-id"] == auth.headers(BODY)["x-session-id"]

    def test_pending_id_carried_into_bound_session(self, identity):
        auth = _authorizer(identity)
        before = auth.session_id()
        session = Session(wallet_address="0xabc", bearer_token="tok")
        auth.bind(session)
        assert session.session_id == before
        assert auth.headers()["x-session-id"] == before

    def test_rebind_keeps_issued_id(self, identity):
        auth = _authorizer(identity)
        first = Session(wallet_address="0xabc", bearer_token="tok-1")
        auth.bind(first)
        issued = auth.headers()["x-session-id"]

        second = Session(wallet_address="0xabc", bearer_token="tok-2")
        auth.bind(second)
        headers = auth.headers()
        assert headers["x-session-id"] == issued
        assert second.session_id == issued
        assert headers["Authorization"] == "Bearer tok-2"
