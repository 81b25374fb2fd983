"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Random state values for the OAuth redirect
"""
from __future__ import annotations

import secrets

from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import HashingError as Argon2HashingError
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


class HashingError(Exception):
    """The hashing backend failed; callers treat it as unauthenticated."""


class PasswordHasher:
    """hash(plain) -> hash and verify(plain, hash) -> bool over argon2."""

    def __init__(self, hasher: Argon2Hasher | None = None):
        self._ph = hasher or Argon2Hasher()

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2
        """
        try:
            return self._ph.hash(password)
        except Argon2HashingError as exc:
            raise HashingError(str(exc)) from exc

    def verify(self, password: str, password_hash: str) -> bool:
        """ Verify a plaintext password using argon2
        """
        try:
            return self._ph.verify(password_hash, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as exc:
            raise HashingError(str(exc)) from exc


def generate_state() -> str:
    """Unguessable value for the OAuth state parameter."""
    return secrets.token_urlsafe(24)
