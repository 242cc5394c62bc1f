"""
tests/test_passwords.py -- Unit tests for auth/passwords.py.

Covers:
  - hash_password() without a salt generates one and returns (salt, hash)
  - hash_password() with a salt is deterministic and echoes the salt back
  - different salts give different hashes
  - verify_password() accepts the right password and rejects everything else
    without raising (wrong password, missing/malformed salt, >72-byte input)
"""

from __future__ import annotations

import pytest

from auth.passwords import equalize_timing, generate_salt, hash_password, verify_password

ROUNDS = 4


class TestHashPassword:
    def test_fresh_salt_is_generated(self) -> None:
        salt, hashed = hash_password("pw123", rounds=ROUNDS)
        assert salt.startswith("$2b$04$")
        assert hashed.startswith(salt)
        assert hashed != "pw123"

    def test_same_salt_is_deterministic(self) -> None:
        """Re-hashing with the stored salt reproduces the stored hash -- the sign-in path."""
        salt, first = hash_password("pw123", rounds=ROUNDS)
        again_salt, second = hash_password("pw123", salt)
        assert again_salt == salt
        assert second == first

    def test_different_salts_give_different_hashes(self) -> None:
        _, a = hash_password("pw123", generate_salt(ROUNDS))
        _, b = hash_password("pw123", generate_salt(ROUNDS))
        assert a != b

    def test_password_over_72_bytes_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            hash_password("x" * 73, rounds=ROUNDS)

    def test_malformed_salt_raises(self) -> None:
        with pytest.raises(ValueError):
            hash_password("pw123", "not-a-bcrypt-salt")


class TestVerifyPassword:
    def test_correct_password(self) -> None:
        salt, hashed = hash_password("correct horse", rounds=ROUNDS)
        assert verify_password("correct horse", salt, hashed) is True

    def test_wrong_password(self) -> None:
        salt, hashed = hash_password("correct horse", rounds=ROUNDS)
        assert verify_password("battery staple", salt, hashed) is False

    @pytest.mark.parametrize("salt", [None, "", "garbage"])
    def test_bad_salt_is_a_mismatch(self, salt) -> None:
        _, hashed = hash_password("pw", rounds=ROUNDS)
        assert verify_password("pw", salt, hashed) is False

    def test_over_long_password_is_a_mismatch(self) -> None:
        salt, hashed = hash_password("pw", rounds=ROUNDS)
        assert verify_password("p" * 100, salt, hashed) is False

    def test_equalize_timing_never_raises(self) -> None:
        equalize_timing("anything", ROUNDS)
        equalize_timing("z" * 200, ROUNDS)
