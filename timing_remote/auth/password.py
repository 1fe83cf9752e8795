"""Password hashing utilities.

New digests are Argon2id. Legacy bcrypt digests still verify so imported
accounts can log in; callers re-hash them with :func:`verify_password_with_upgrade`.
"""

from __future__ import annotations

from dataclasses import dataclass

import bcrypt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from argon2.low_level import Type

_argon2_hasher = PasswordHasher(type=Type.ID)

_HASH_PREFIXES = ("$argon2", "$2a$", "$2b$", "$2y$")


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    upgraded_hash: str | None = None


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return _argon2_hasher.hash(password)


def digest_looks_hashed(value: str) -> bool:
    """True when ``value`` is an Argon2 or bcrypt digest rather than plain text."""
    return bool(value) and value.startswith(_HASH_PREFIXES)


def _verify_argon2(plain_password: str, hashed_password: str) -> VerifyResult:
    try:
        _argon2_hasher.verify(hashed_password, plain_password)
    except (VerificationError, InvalidHashError):
        return VerifyResult(ok=False)

    if _argon2_hasher.check_needs_rehash(hashed_password):
        return VerifyResult(ok=True, upgraded_hash=hash_password(plain_password))

    return VerifyResult(ok=True, upgraded_hash=None)


def _verify_bcrypt(plain_password: str, hashed_password: str) -> VerifyResult:
    try:
        ok = bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return VerifyResult(ok=False)
    if not ok:
        return VerifyResult(ok=False)

    return VerifyResult(ok=True, upgraded_hash=hash_password(plain_password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password without upgrading."""
    return verify_password_with_upgrade(plain_password, hashed_password).ok


def verify_password_with_upgrade(
    plain_password: str, hashed_password: str
) -> VerifyResult:
    """Verify password and indicate whether the stored hash should be upgraded."""
    if not hashed_password:
        return VerifyResult(ok=False)

    if hashed_password.startswith("$argon2"):
        return _verify_argon2(plain_password, hashed_password)

    if hashed_password.startswith("$2"):
        return _verify_bcrypt(plain_password, hashed_password)

    # Unknown scheme: fail closed.
    return VerifyResult(ok=False)
