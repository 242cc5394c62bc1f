"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and sessions.

Pattern: Repository + Data Mapper + explicit transaction scope.
  AuthDatabase owns the engine and hands out transactions.
  UserStore / SessionStore are repositories bound to one open connection, so
  every statement an operation issues runs inside the same transaction.
  _row_to_account / _row_to_session are the mappers.
Service code never touches SQL directly.

Usage:
    db = AuthDatabase("sqlite:///askhub_accounts.db")
    with db.transaction() as conn:
        users = UserStore(conn)
        account = users.get_by_username("alice")
    db.close()

Security:
  All queries use bound parameters. No f-strings in SQL.

Integrity:
  UNIQUE(username) and UNIQUE(email) are enforced in SQL. The service checks
  first for a precise error kind, but the constraint is what arbitrates a race
  between two processes. UNIQUE(access_token) guards session tokens.

  Sessions reference accounts by integer id without a FOREIGN KEY: the link is
  lookup-only. delete_for_account() removes them when an account is deleted.

Timestamps are stored as ISO 8601 UTC strings and mapped back to aware
datetimes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Connection, Engine

from auth.models import Account, Session

logger = logging.getLogger("askhub.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("uuid", String(36), nullable=False, unique=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", String(128), nullable=False),
    Column("salt", String(64), nullable=False),
    Column("role", String(30), nullable=False, server_default="nonadmin"),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("country", String(100)),
    Column("about_me", Text),
    Column("dob", String(32)),
    Column("contact_number", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, nullable=False),
    Column("access_token", String(1024), nullable=False, unique=True),
    Column("login_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("logout_at", String(32)),  # NULL while the session is live
    Index("ix_sessions_account_id", "account_id"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases ignore it.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    # Naive strings are treated as UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Database / transaction scope
# ---------------------------------------------------------------------------


class AuthDatabase:
    """Engine owner and transaction factory for the auth tables."""

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside BEGIN ... COMMIT.

        Commits when the block exits normally and rolls back on any exception,
        which is then re-raised. The connection is returned to the pool on
        every exit path.
        """
        with self.engine.begin() as conn:
            try:
                yield conn
            except Exception as exc:
                logger.debug("transaction rolled back (%s)", type(exc).__name__)
                raise

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class UserStore:
    """Account repository bound to one open connection."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def get_by_username(self, username: str) -> Account | None:
        """Exact, case-sensitive match. Returns None if not found."""
        row = self._conn.execute(_accounts.select().where(_accounts.c.username == username)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        row = self._conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_uuid(self, account_uuid: str) -> Account | None:
        row = self._conn.execute(_accounts.select().where(_accounts.c.uuid == account_uuid)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        row = self._conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def insert(self, account: Account) -> Account | None:
        """Insert account and return it as stored (with id and created_at).

        Raises sqlalchemy.exc.IntegrityError if username, email or uuid is
        already taken.
        """
        result = self._conn.execute(
            _accounts.insert().values(
                uuid=account.uuid,
                username=account.username,
                email=account.email,
                hashed_password=account.hashed_password,
                salt=account.salt,
                role=account.role,
                first_name=account.first_name,
                last_name=account.last_name,
                country=account.country,
                about_me=account.about_me,
                dob=account.dob,
                contact_number=account.contact_number,
                created_at=_to_iso(account.created_at or datetime.now(timezone.utc)),
            )
        )
        return self.get_by_id(result.inserted_primary_key[0])

    def update_last_login(self, account_id: int, when: datetime) -> bool:
        result = self._conn.execute(
            _accounts.update().where(_accounts.c.id == account_id).values(last_login=_to_iso(when))
        )
        return result.rowcount > 0

    def delete(self, account_id: int) -> bool:
        """Delete the account row. Sessions must be removed by the caller first."""
        result = self._conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
        return result.rowcount > 0


class SessionStore:
    """Session repository bound to one open connection."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def get_by_token(self, access_token: str) -> Session | None:
        """Look up a session by token, whatever its logout state."""
        row = self._conn.execute(_sessions.select().where(_sessions.c.access_token == access_token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def insert(self, session: Session) -> Session | None:
        """Insert session and return it as stored.

        Raises sqlalchemy.exc.IntegrityError on a duplicate access_token.
        """
        result = self._conn.execute(
            _sessions.insert().values(
                account_id=session.account_id,
                access_token=session.access_token,
                login_at=_to_iso(session.login_at),
                expires_at=_to_iso(session.expires_at),
                logout_at=_to_iso(session.logout_at),
            )
        )
        row = self._conn.execute(
            _sessions.select().where(_sessions.c.id == result.inserted_primary_key[0])
        ).fetchone()
        return _row_to_session(row) if row is not None else None

    def mark_signed_out(self, access_token: str, when: datetime) -> bool:
        """Stamp logout_at on a live session. Returns False if it was already set.

        Single conditional UPDATE: the first sign-out wins and later ones never
        overwrite the recorded time.
        """
        result = self._conn.execute(
            _sessions.update()
            .where((_sessions.c.access_token == access_token) & (_sessions.c.logout_at.is_(None)))
            .values(logout_at=_to_iso(when))
        )
        return result.rowcount > 0

    def list_for_account(self, account_id: int) -> list[Session]:
        """All sessions for an account, newest first.

        No service operation reads this. It is for audit and inspection of an
        account's session history (the delete cascade tests use it).
        """
        rows = self._conn.execute(
            _sessions.select().where(_sessions.c.account_id == account_id).order_by(_sessions.c.id.desc())
        ).fetchall()
        return [_row_to_session(r) for r in rows]

    def delete_for_account(self, account_id: int) -> int:
        """Remove every session of an account. Returns the number removed."""
        result = self._conn.execute(_sessions.delete().where(_sessions.c.account_id == account_id))
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        uuid=row.uuid,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        salt=row.salt,
        role=row.role,
        first_name=row.first_name,
        last_name=row.last_name,
        country=row.country,
        about_me=row.about_me,
        dob=row.dob,
        contact_number=row.contact_number,
        created_at=_from_iso(row.created_at),
        last_login=_from_iso(row.last_login),
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        account_id=row.account_id,
        access_token=row.access_token,
        login_at=_from_iso(row.login_at),
        expires_at=_from_iso(row.expires_at),
        logout_at=_from_iso(row.logout_at),
    )
