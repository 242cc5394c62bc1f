"""
auth/dependencies.py -- FastAPI Depends() helpers for the host application.

The Q&A application owns its routes; these helpers are how its handlers ask
the auth core who is calling. The session token is read from the
Authorization header, either raw or as "Bearer <token>".

get_current_account() resolves the token via AuthSessionManager.validate_token().
require_admin() goes through AdminGate and additionally demands the admin role.

Both convert AuthError into HTTPException with the kind's HTTP status and a
{"code", "message"} detail, the same envelope the rest of the application uses.

The manager is expected on request.app.state.auth_manager, set by the host
application's lifespan.

Layer rule: the only auth/ module that imports fastapi.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import AuthError
from auth.models import Account
from auth.service import AdminGate, AuthSessionManager


def _manager(request: Request) -> AuthSessionManager:
    return request.app.state.auth_manager


def _to_http(exc: AuthError) -> HTTPException:
    return HTTPException(status_code=exc.kind.http_status, detail=exc.to_dict())


def get_current_account(request: Request) -> Account:
    """Require a live session. Raises HTTP 401 when the token is missing, unknown, signed out or expired.

    Use as a FastAPI dependency:
        @router.get("/userprofile/{user_id}")
        def profile(user_id: str, account: Account = Depends(get_current_account)): ...
    """
    token = request.headers.get("Authorization", "")
    try:
        return _manager(request).validate_token(token)
    except AuthError as exc:
        raise _to_http(exc) from exc


def require_admin(request: Request) -> Account:
    """Require an admin session. HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    token = request.headers.get("Authorization", "")
    try:
        return AdminGate(_manager(request)).require_admin(token)
    except AuthError as exc:
        raise _to_http(exc) from exc
