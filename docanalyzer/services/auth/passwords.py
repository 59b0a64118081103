from __future__ import annotations

from passlib.hash import pbkdf2_sha256 as hasher


def hash_password(password: str) -> str:
    # pbkdf2_sha256 embeds a per-hash random salt and the round count.
    return hasher.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    # Federation-only accounts have no hash and never match.
    if not password_hash:
        return False
    try:
        return hasher.verify(password, password_hash)
    except ValueError:
        return False
