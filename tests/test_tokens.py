"""
tests/test_tokens.py -- Unit tests for credential blob parsing and session tokens.

Covers:
  - "Basic base64(user:pass)" decoding, including passwords with colons
  - every malformed shape maps to MALFORMED_CREDENTIALS (not BAD_CREDENTIALS)
  - Bearer prefix stripping
  - session tokens carry sub/exp/jti, are unique per issue, and fail
    verification under a different key or after tampering
"""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import AuthError, ErrorKind
from auth.tokens import (
    create_session_token,
    decode_session_token,
    encode_basic_credentials,
    parse_basic_credentials,
    strip_bearer,
)

KEY = "k" * 40
OTHER_KEY = "o" * 40


def _basic(raw: str) -> str:
    return "Basic " + base64.b64encode(raw.encode("utf-8")).decode("ascii")


class TestParseBasicCredentials:
    def test_simple(self) -> None:
        assert parse_basic_credentials(_basic("alice:pw123")) == ("alice", "pw123")

    def test_password_with_colon_is_kept_intact(self) -> None:
        """Only the first colon separates username from password."""
        assert parse_basic_credentials(_basic("alice:p:w:1")) == ("alice", "p:w:1")

    def test_empty_password_is_allowed(self) -> None:
        assert parse_basic_credentials(_basic("alice:")) == ("alice", "")

    def test_encode_matches_parse(self) -> None:
        blob = encode_basic_credentials("bob", "s3cr:et")
        assert blob.startswith("Basic ")
        assert parse_basic_credentials(blob) == ("bob", "s3cr:et")

    @pytest.mark.parametrize(
        "blob",
        [
            None,
            "",
            "alice:pw123",  # no scheme
            "Bearer " + base64.b64encode(b"alice:pw123").decode(),  # wrong scheme
            "Basic !!!not-base64!!!",
            "Basic " + base64.b64encode(b"no-colon-here").decode(),
            "Basic " + base64.b64encode(b":password-only").decode(),
            "Basic " + base64.b64encode(b"\xff\xfe:x").decode(),  # not UTF-8
            "Basic café",  # non-ASCII payload
        ],
    )
    def test_malformed_blobs(self, blob) -> None:
        with pytest.raises(AuthError) as excinfo:
            parse_basic_credentials(blob)
        assert excinfo.value.kind is ErrorKind.MALFORMED_CREDENTIALS


class TestStripBearer:
    def test_raw_token_passes_through(self) -> None:
        assert strip_bearer("abc.def.ghi") == "abc.def.ghi"

    def test_bearer_prefix_removed(self) -> None:
        assert strip_bearer("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_empty(self) -> None:
        assert strip_bearer(None) == ""
        assert strip_bearer("   ") == ""


class TestSessionTokens:
    def setup_method(self) -> None:
        self.issued = datetime.now(timezone.utc).replace(microsecond=0)
        self.expires = self.issued + timedelta(hours=8)

    def test_claims(self) -> None:
        token = create_session_token("uuid-1", self.issued, self.expires, KEY)
        claims = decode_session_token(token, KEY)
        assert claims is not None
        assert claims["sub"] == "uuid-1"
        assert claims["exp"] - claims["iat"] == 8 * 3600
        assert claims["jti"]

    def test_tokens_are_unique_per_issue(self) -> None:
        a = create_session_token("uuid-1", self.issued, self.expires, KEY)
        b = create_session_token("uuid-1", self.issued, self.expires, KEY)
        assert a != b

    def test_wrong_key_fails(self) -> None:
        token = create_session_token("uuid-1", self.issued, self.expires, KEY)
        assert decode_session_token(token, OTHER_KEY) is None

    def test_tampered_token_fails(self) -> None:
        token = create_session_token("uuid-1", self.issued, self.expires, KEY)
        header, payload, signature = token.split(".")
        forged_payload = base64.urlsafe_b64encode(b'{"sub":"uuid-2","jti":"x"}').decode().rstrip("=")
        assert decode_session_token(f"{header}.{forged_payload}.{signature}", KEY) is None

    def test_expiry_check_can_be_deferred(self) -> None:
        issued = self.issued - timedelta(hours=10)
        token = create_session_token("uuid-1", issued, issued + timedelta(hours=8), KEY)
        assert decode_session_token(token, KEY) is None
        assert decode_session_token(token, KEY, verify_exp=False)["sub"] == "uuid-1"

    def test_garbage_is_rejected(self) -> None:
        assert decode_session_token("not-a-token", KEY) is None
