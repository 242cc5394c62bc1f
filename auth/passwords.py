"""
auth/passwords.py -- Salted password hashing (bcrypt, direct usage).

Contract:
  hash_password(plain)        -> (fresh_salt, hash)   sign-up path
  hash_password(plain, salt)  -> (salt, hash)         verification path

The salt is a bcrypt salt string ("$2b$<rounds>$<22 chars>") and is stored in
its own column next to the hash. bcrypt.hashpw() is deterministic for a given
password and salt, so re-hashing at sign-in and comparing against the stored
hash is a valid verification.

Security design decisions:
  bcrypt is the right choice for low-entropy secrets because its cost factor
  makes brute force expensive. gensalt() draws 128 bits from os.urandom.

  Passwords longer than 72 bytes are rejected with ValueError instead of being
  truncated. bcrypt only reads the first 72 bytes, so two long passwords with a
  shared prefix would otherwise hash identically.

  equalize_timing() runs one hash against a throwaway salt so a sign-in for
  an unknown username costs the same as a wrong password [C1].

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import hmac

import bcrypt

_MAX_PASSWORD_BYTES = 72
_DEFAULT_ROUNDS = 12


def _encode(plain: str) -> bytes:
    raw = plain.encode("utf-8")
    if len(raw) > _MAX_PASSWORD_BYTES:
        raise ValueError(f"Password exceeds {_MAX_PASSWORD_BYTES} bytes")
    return raw


def generate_salt(rounds: int = _DEFAULT_ROUNDS) -> str:
    return bcrypt.gensalt(rounds=rounds).decode("ascii")


def hash_password(plain: str, salt: str | None = None, rounds: int = _DEFAULT_ROUNDS) -> tuple[str, str]:
    """Return (salt, hash) for plain.

    When salt is None a fresh one is generated with the given cost factor.
    When salt is supplied it is reused as-is (rounds is then ignored, the cost
    is encoded in the salt) and returned unchanged.

    Raises ValueError for passwords over 72 bytes or a malformed salt.
    """
    if salt is None:
        salt = generate_salt(rounds)
    hashed = bcrypt.hashpw(_encode(plain), salt.encode("ascii"))
    return salt, hashed.decode("ascii")


def verify_password(plain: str, salt: str | None, hashed: str | None) -> bool:
    """Return True if plain re-hashes to hashed under salt.

    Never raises: a missing or malformed salt, or an over-long password, is
    simply a mismatch.
    """
    if not salt or not hashed:
        return False
    try:
        _, candidate = hash_password(plain, salt)
    except ValueError:
        return False
    return hmac.compare_digest(candidate.encode("ascii"), hashed.encode("ascii"))


def equalize_timing(plain: str, rounds: int = _DEFAULT_ROUNDS) -> None:
    """Spend one hash at the given cost on plain and discard it [C1]."""
    try:
        hash_password(plain, generate_salt(rounds))
    except ValueError:
        pass
