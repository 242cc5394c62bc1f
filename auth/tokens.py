"""
auth/tokens.py -- Credential blob decoding and signed session tokens.

Security design decisions:
  Session tokens: python-jose JWS with HS256, signed with Settings.secret_key.
       Claims: sub (account uuid), iat, exp, jti. jti is 128 random bits so two
       sign-ins in the same second still produce distinct tokens (the sessions
       table has a UNIQUE index on access_token). The token never contains the
       password hash or anything derived from it -- a leaked token is a bearer
       credential for one session only, not a password-cracking oracle.

       The sessions table remains the authority on logout and expiry. A token
       is tamper-evident on its own (decode_session_token), but the service
       always resolves it through the store as well.

  Credential blob: "Basic " + base64("<username>:<password>"). Only the first
       colon separates username from password, so passwords may contain
       colons. Anything else is MALFORMED_CREDENTIALS -- a client input error,
       deliberately distinct from BAD_CREDENTIALS.

The signing key is passed in by the caller (AuthSessionManager holds the
Settings); this module reads no configuration itself.

Layer rule: no imports from core/. Imports auth.errors only.
"""

from __future__ import annotations

import base64
import logging
import secrets
from datetime import datetime

from jose import JWTError, jwt

from auth.errors import AuthError, ErrorKind

logger = logging.getLogger("askhub.auth.tokens")

_ALGORITHM = "HS256"
_BASIC_PREFIX = "Basic "
_BEARER_PREFIX = "Bearer "


# ---------------------------------------------------------------------------
# Credential blob
# ---------------------------------------------------------------------------


def parse_basic_credentials(blob: str | None) -> tuple[str, str]:
    """Decode "Basic base64(user:pass)" into (username, password).

    Raises AuthError(MALFORMED_CREDENTIALS) when the prefix is missing, the
    payload is not valid base64 or UTF-8, there is no colon, or the username
    part is empty.
    """
    if not blob or not blob.startswith(_BASIC_PREFIX):
        raise AuthError(ErrorKind.MALFORMED_CREDENTIALS)
    encoded = blob[len(_BASIC_PREFIX) :].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except ValueError as exc:  # binascii.Error, UnicodeDecodeError, non-ASCII input
        raise AuthError(ErrorKind.MALFORMED_CREDENTIALS) from exc

    username, sep, password = decoded.partition(":")
    if not sep or not username:
        raise AuthError(ErrorKind.MALFORMED_CREDENTIALS)
    return username, password


def encode_basic_credentials(username: str, password: str) -> str:
    """Inverse of parse_basic_credentials(). Used by the CLI and tests."""
    raw = f"{username}:{password}".encode("utf-8")
    return _BASIC_PREFIX + base64.b64encode(raw).decode("ascii")


def strip_bearer(token: str | None) -> str:
    """Accept either a raw token or an "Authorization: Bearer <token>" value."""
    if not token:
        return ""
    token = token.strip()
    if token.startswith(_BEARER_PREFIX):
        return token[len(_BEARER_PREFIX) :].strip()
    return token


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def create_session_token(account_uuid: str, issued_at: datetime, expires_at: datetime, secret_key: str) -> str:
    """Encode a signed, time-bound session token for account_uuid."""
    payload = {
        "sub": account_uuid,
        "iat": issued_at,
        "exp": expires_at,
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str, secret_key: str, verify_exp: bool = True) -> dict | None:
    """Verify the signature and return the claims, or None on any failure.

    verify_exp=False lets the service report an expired session as
    SESSION_EXPIRED (from the stored expires_at) instead of as an unknown token.
    """
    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[_ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except JWTError:
        logger.debug("Rejected session token with bad signature or claims")
        return None
    if "sub" not in payload or "jti" not in payload:
        return None
    return payload
