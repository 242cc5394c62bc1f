"""
auth/service.py -- Account and session orchestration.

AuthSessionManager is the control center for sign-up, sign-in, sign-out,
token validation, account lookup and admin deletion. AdminGate is the thin
role check the host application puts in front of privileged actions.

Wiring: the manager is built explicitly from an AuthDatabase and a Settings
instance. It holds no module-level state and reads no environment.

Transactions: every operation opens exactly one AuthDatabase.transaction()
and performs all of its reads and writes through repositories bound to that
connection. A failure anywhere rolls the whole operation back, so a failed
sign-up leaves no account row and a failed sign-in leaves no session row.

Uniqueness: sign-ups are serialized in-process by a lock around the
check-then-insert sequence. Across processes the UNIQUE constraints in the
store arbitrate, and an IntegrityError is mapped back to the duplicate kind.

Signed-out semantics: a session is terminated as soon as logout_at is set,
whatever its value relative to the current time.

Storage errors (SQLAlchemyError) are logged here with logger.exception and
converted to the operation's storage kind. They never escape as raw
SQLAlchemy exceptions.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import AuthError, ErrorKind
from auth.models import Account, Session
from auth.passwords import equalize_timing, hash_password, verify_password
from auth.store import AuthDatabase, SessionStore, UserStore
from auth.tokens import create_session_token, decode_session_token, parse_basic_credentials, strip_bearer
from core.config import Settings

logger = logging.getLogger("askhub.auth")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthSessionManager:
    """Sign-up, sign-in, sign-out and token-based authorization.

    Usage:
        manager = AuthSessionManager(AuthDatabase(settings.database_url), settings)
        account = manager.sign_up(Account(first_name="Alice"), "alice", "a@x.com", "pw123")
        session = manager.sign_in(encode_basic_credentials("alice", "pw123"))
        manager.validate_token(session.access_token)   # -> account
        manager.sign_out(session.access_token)

    clock is injectable so tests can move time past a session's expiry.
    """

    def __init__(
        self,
        db: AuthDatabase,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._settings = settings
        self._clock = clock
        self._signup_lock = threading.Lock()

    @property
    def admin_role(self) -> str:
        return self._settings.admin_role

    # ------------------------------------------------------------------
    # Sign-up
    # ------------------------------------------------------------------

    def sign_up(self, draft: Account, username: str, email: str, password: str) -> Account:
        """Register a new account from draft's profile fields.

        Raises AuthError with DUPLICATE_USERNAME, DUPLICATE_EMAIL (checked in
        that order) or REGISTRATION_FAILURE. The password is only hashed once
        both checks pass.
        """
        with self._signup_lock:
            try:
                with self._db.transaction() as conn:
                    users = UserStore(conn)
                    if users.get_by_username(username) is not None:
                        raise AuthError(ErrorKind.DUPLICATE_USERNAME)
                    if users.get_by_email(email) is not None:
                        raise AuthError(ErrorKind.DUPLICATE_EMAIL)
                    created = users.insert(self._new_account(draft, username, email, password))
                    if created is None:
                        raise AuthError(ErrorKind.REGISTRATION_FAILURE)
            except AuthError as exc:
                logger.warning("Sign-up rejected for username=%r: %s", username, exc.kind.code)
                raise
            except IntegrityError as exc:
                # Another process won the race after our checks passed.
                kind = self._classify_conflict(username, email)
                logger.warning("Sign-up conflict for username=%r: %s", username, kind.code)
                raise AuthError(kind) from exc
            except SQLAlchemyError as exc:
                logger.exception("Sign-up failed in the account store")
                raise AuthError(ErrorKind.REGISTRATION_FAILURE) from exc

        logger.info("Account registered: uuid=%s username=%r role=%s", created.uuid, created.username, created.role)
        return created

    def _new_account(self, draft: Account, username: str, email: str, password: str) -> Account:
        """Hash password and stamp identity fields onto a copy of draft."""
        try:
            salt, hashed = hash_password(password, rounds=self._settings.bcrypt_rounds)
        except ValueError as exc:
            raise AuthError(ErrorKind.REGISTRATION_FAILURE, str(exc)) from exc
        return replace(
            draft,
            id=None,
            uuid=str(uuid.uuid4()),
            username=username,
            email=email,
            hashed_password=hashed,
            salt=salt,
            role=draft.role or self._settings.default_role,
            created_at=self._clock(),
            last_login=None,
        )

    def _classify_conflict(self, username: str, email: str) -> ErrorKind:
        try:
            with self._db.transaction() as conn:
                users = UserStore(conn)
                if users.get_by_username(username) is not None:
                    return ErrorKind.DUPLICATE_USERNAME
                if users.get_by_email(email) is not None:
                    return ErrorKind.DUPLICATE_EMAIL
        except SQLAlchemyError:
            logger.exception("Could not classify sign-up conflict")
        return ErrorKind.REGISTRATION_FAILURE

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------

    def sign_in(self, credential_blob: str) -> Session:
        """Verify "Basic base64(user:pass)" and open a new session.

        Raises AuthError with MALFORMED_CREDENTIALS, UNKNOWN_USER,
        BAD_CREDENTIALS or SESSION_PERSIST_FAILURE.
        """
        username, password = parse_basic_credentials(credential_blob)

        try:
            with self._db.transaction() as conn:
                users = UserStore(conn)
                account = users.get_by_username(username)
                if account is None:
                    # Same bcrypt cost as a real check [C1].
                    equalize_timing(password, self._settings.bcrypt_rounds)
                    raise AuthError(ErrorKind.UNKNOWN_USER)
                if not verify_password(password, account.salt, account.hashed_password):
                    raise AuthError(ErrorKind.BAD_CREDENTIALS)

                issued_at = self._clock()
                expires_at = issued_at + timedelta(seconds=self._settings.session_expire_seconds)
                token = create_session_token(account.uuid, issued_at, expires_at, self._settings.secret_key)

                session = SessionStore(conn).insert(
                    Session(
                        account_id=account.id,
                        access_token=token,
                        login_at=issued_at,
                        expires_at=expires_at,
                    )
                )
                if session is None:
                    raise AuthError(ErrorKind.SESSION_PERSIST_FAILURE)
                users.update_last_login(account.id, issued_at)
        except AuthError as exc:
            logger.warning("Sign-in rejected for username=%r: %s", username, exc.kind.code)
            raise
        except SQLAlchemyError as exc:
            logger.exception("Sign-in could not persist a session")
            raise AuthError(ErrorKind.SESSION_PERSIST_FAILURE) from exc

        logger.info("Signed in: uuid=%s session_id=%s", account.uuid, session.id)
        return session

    # ------------------------------------------------------------------
    # Sign-out
    # ------------------------------------------------------------------

    def sign_out(self, token: str) -> Account:
        """Terminate the session for token and return its owner.

        Raises AuthError(NOT_SIGNED_IN) if no session matches. Signing out an
        already signed-out token succeeds and keeps the first logout time.
        """
        token = strip_bearer(token)
        try:
            with self._db.transaction() as conn:
                sessions = SessionStore(conn)
                session = sessions.get_by_token(token) if token else None
                if session is None:
                    raise AuthError(ErrorKind.NOT_SIGNED_IN)
                if not sessions.mark_signed_out(token, self._clock()):
                    logger.info("Sign-out repeated for session_id=%s, keeping first logout time", session.id)
                account = UserStore(conn).get_by_id(session.account_id)
                if account is None:
                    raise AuthError(ErrorKind.NOT_SIGNED_IN)
        except AuthError as exc:
            logger.warning("Sign-out rejected: %s", exc.kind.code)
            raise
        except SQLAlchemyError as exc:
            logger.exception("Sign-out failed in the session store")
            raise AuthError(ErrorKind.STORAGE_FAILURE) from exc

        logger.info("Signed out: uuid=%s session_id=%s", account.uuid, session.id)
        return account

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def validate_token(self, token: str) -> Account:
        """Resolve token to its owning account.

        Raises AuthError with NOT_SIGNED_IN (unknown, forged or orphaned
        token), SIGNED_OUT (logout_at is set) or SESSION_EXPIRED.
        """
        token = strip_bearer(token)
        if not token:
            raise AuthError(ErrorKind.NOT_SIGNED_IN)
        try:
            with self._db.transaction() as conn:
                session = SessionStore(conn).get_by_token(token)
                if session is None:
                    raise AuthError(ErrorKind.NOT_SIGNED_IN)
                if session.is_signed_out:
                    raise AuthError(ErrorKind.SIGNED_OUT)
                if session.is_expired(self._clock()):
                    raise AuthError(ErrorKind.SESSION_EXPIRED)
                account = UserStore(conn).get_by_id(session.account_id)
        except SQLAlchemyError as exc:
            logger.exception("Token validation failed in the session store")
            raise AuthError(ErrorKind.STORAGE_FAILURE) from exc

        # Signature check runs after the store lookup: the store decides
        # logout and expiry, the signature proves the token was issued here.
        claims = decode_session_token(token, self._settings.secret_key, verify_exp=False)
        if account is None or claims is None or claims["sub"] != account.uuid:
            logger.warning("Session token failed authenticity check")
            raise AuthError(ErrorKind.NOT_SIGNED_IN)
        return account

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def fetch_by_id(self, account_uuid: str) -> Account:
        """Raises AuthError(NOT_FOUND) when no account has this uuid."""
        try:
            with self._db.transaction() as conn:
                account = UserStore(conn).get_by_uuid(account_uuid)
        except SQLAlchemyError as exc:
            logger.exception("Account lookup failed")
            raise AuthError(ErrorKind.STORAGE_FAILURE) from exc
        if account is None:
            raise AuthError(ErrorKind.NOT_FOUND)
        return account

    def delete_account(self, requesting: Account, target_uuid: str) -> Account:
        """Delete target_uuid and all of its sessions. Admins only.

        The role check runs before any lookup, so a non-admin learns nothing
        about whether the target exists. Returns the deleted account.
        """
        if requesting.role != self._settings.admin_role:
            logger.warning("Delete of %s refused: uuid=%s is not an admin", target_uuid, requesting.uuid)
            raise AuthError(ErrorKind.FORBIDDEN)
        try:
            with self._db.transaction() as conn:
                users = UserStore(conn)
                target = users.get_by_uuid(target_uuid)
                if target is None:
                    raise AuthError(ErrorKind.NOT_FOUND)
                removed = SessionStore(conn).delete_for_account(target.id)
                users.delete(target.id)
        except SQLAlchemyError as exc:
            logger.exception("Account deletion failed")
            raise AuthError(ErrorKind.STORAGE_FAILURE) from exc

        logger.info(
            "Account deleted: uuid=%s by admin uuid=%s (%d session(s) removed)",
            target.uuid,
            requesting.uuid,
            removed,
        )
        return target


class AdminGate:
    """Token validation plus the admin role check."""

    def __init__(self, manager: AuthSessionManager) -> None:
        self._manager = manager

    def require_admin(self, token: str) -> Account:
        """Raises AuthError with NOT_SIGNED_IN, SIGNED_OUT, SESSION_EXPIRED or FORBIDDEN."""
        account = self._manager.validate_token(token)
        if account.role != self._manager.admin_role:
            raise AuthError(ErrorKind.FORBIDDEN)
        return account

    def delete_user(self, token: str, target_uuid: str) -> Account:
        admin = self.require_admin(token)
        return self._manager.delete_account(admin, target_uuid)
