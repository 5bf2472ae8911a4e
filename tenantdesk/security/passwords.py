"""Argon2 password hashing for console accounts (Passlib)."""

from __future__ import annotations

from passlib.context import CryptContext

_pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    """Hash ``password``; shorter than :data:`MIN_PASSWORD_LENGTH` is rejected."""

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )
    return _pwd_context.hash(password)


def verify_password(password: str, hashed_password: str | None) -> bool:
    """Check ``password`` against a stored hash. Users without a hash never match."""

    if not hashed_password or not password:
        return False
    return _pwd_context.verify(password, hashed_password)


def needs_rehash(hashed_password: str) -> bool:
    return _pwd_context.needs_update(hashed_password)


__all__ = ["MIN_PASSWORD_LENGTH", "hash_password", "needs_rehash", "verify_password"]
