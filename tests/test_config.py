"""
tests/test_config.py -- Settings validation rules in core/config.py.

Covers:
  - production mode refuses to start without SECRET_KEY [M7]
  - keys shorter than 32 characters are rejected in every mode [M6]
  - debug mode generates a usable key
  - defaults for session lifetime and roles
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_production_requires_secret_key(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValidationError):
        Settings(debug=False, secret_key="")


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(debug=True, secret_key="too-short")


def test_debug_generates_key() -> None:
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_defaults() -> None:
    settings = Settings(debug=True, secret_key="s" * 32)
    assert settings.session_expire_seconds == 8 * 3600
    assert settings.admin_role == "admin"
    assert settings.default_role == "nonadmin"


def test_bcrypt_rounds_bounds() -> None:
    with pytest.raises(ValidationError):
        Settings(debug=True, secret_key="s" * 32, bcrypt_rounds=3)
