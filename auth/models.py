"""
auth/models.py -- Domain dataclasses for accounts and sessions.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; auth/store.py maps rows to them and auth/service.py does the work.

Timestamps are timezone-aware UTC datetimes in memory. The store persists them
as ISO 8601 strings.

Layer rule: no imports from core/ or from other auth/ modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    """A registered AskHub user.

    A sign-up request arrives as a draft Account carrying only profile fields;
    AuthSessionManager.sign_up() fills in uuid, username, email, the password
    hash and salt before persisting it.

    username and email are each unique across all accounts. role is compared
    against Settings.admin_role for administrative actions.
    """

    username: str = ""
    email: str = ""
    role: str = ""  # "admin" | "nonadmin"; empty means "use the configured default"
    uuid: str | None = None
    hashed_password: str | None = None
    salt: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    country: str | None = None
    about_me: str | None = None
    dob: str | None = None
    contact_number: str | None = None
    id: int | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None


@dataclass
class Session:
    """One sign-in. Kept after sign-out for history.

    account_id is a weak reference: the session never loads or owns the
    Account, the service looks it up on demand.

    A non-null logout_at terminates the session regardless of expires_at.
    """

    account_id: int
    access_token: str
    login_at: datetime
    expires_at: datetime
    logout_at: datetime | None = None
    id: int | None = None

    @property
    def is_signed_out(self) -> bool:
        return self.logout_at is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
