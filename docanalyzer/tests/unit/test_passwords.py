from __future__ import annotations

from docanalyzer.services.auth.passwords import hash_password, verify_password


def test_hash_is_salted_and_verifiable() -> None:
    first = hash_password("Secret123")
    second = hash_password("Secret123")
    assert first != second
    assert "Secret123" not in first
    assert verify_password("Secret123", first)
    assert not verify_password("secret123", first)


def test_missing_hash_never_verifies() -> None:
    assert not verify_password("", None)
    assert not verify_password("anything", None)
