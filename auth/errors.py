"""
auth/errors.py -- Failure taxonomy for the account and session core.

Every rejection the auth service can produce is a member of ErrorKind. Each
member carries a machine-readable code, a default user-facing message, and the
HTTP status a host adapter should answer with (see auth/dependencies.py).

AuthError is the only exception type the service raises. Callers branch on
exc.kind, never on message text.

Layer rule: stdlib only.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Distinct user-facing outcomes. Codes are stable; messages may change."""

    # Sign-up
    DUPLICATE_USERNAME = ("SGR-001", "Try any other Username, this Username has already been taken", 409)
    DUPLICATE_EMAIL = ("SGR-002", "This user has already been registered, try with any other emailId", 409)
    REGISTRATION_FAILURE = ("SGR-003", "The account could not be registered", 500)

    # Sign-in
    UNKNOWN_USER = ("ATH-001", "This username does not exist", 401)
    BAD_CREDENTIALS = ("ATH-002", "Password failed", 401)
    SESSION_PERSIST_FAILURE = ("ATH-003", "Could not create auth token", 500)
    MALFORMED_CREDENTIALS = ("ATH-004", "Authorization must be 'Basic ' followed by base64(username:password)", 400)

    # Authorization
    NOT_SIGNED_IN = ("ATHR-001", "User has not signed in", 401)
    SIGNED_OUT = ("ATHR-002", "User is signed out. Sign in first", 401)
    FORBIDDEN = ("ATHR-003", "Unauthorized access, entered user is not an admin", 403)
    SESSION_EXPIRED = ("ATHR-004", "Session has expired. Sign in again", 401)

    # Lookup
    NOT_FOUND = ("USR-001", "User with entered uuid does not exist", 404)

    # Infrastructure
    STORAGE_FAILURE = ("SYS-001", "The account store is unavailable", 503)

    def __init__(self, code: str, message: str, http_status: int) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status


class AuthError(Exception):
    """Raised by the auth service for every rejected operation.

    message defaults to the kind's message. to_dict() produces the
    {"code", "message"} envelope host adapters put in error responses.
    """

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or kind.message
        super().__init__(f"{kind.code}: {self.message}")

    @property
    def code(self) -> str:
        return self.kind.code

    def to_dict(self) -> dict:
        return {"code": self.kind.code, "message": self.message}
