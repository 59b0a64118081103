from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import AuthenticationFailedError
from docanalyzer.services.auth import oidc


def _generate_jwks(kid: str = "test-kid") -> tuple[object, dict]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk["kid"] = kid
    return private_key, {"keys": [jwk]}


def _claims(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": "google-sub-1",
        "iss": "https://accounts.google.com",
        "aud": "test-client-id",
        "exp": int((now + timedelta(minutes=5)).timestamp()),
        "email": "Person@Example.com",
        "email_verified": True,
        "name": "Person Example",
    }
    claims.update(overrides)
    return claims


def _install_jwks(monkeypatch, jwks: dict) -> list[int]:
    calls: list[int] = []

    async def _fake_fetch(self) -> dict:
        calls.append(1)
        return jwks

    monkeypatch.setattr(oidc.OidcVerifier, "_fetch_jwks", _fake_fetch)
    return calls


@pytest.mark.asyncio
async def test_verify_assertion_accepts_valid_token(monkeypatch) -> None:
    private_key, jwks = _generate_jwks()
    _install_jwks(monkeypatch, jwks)
    token = jwt.encode(_claims(), private_key, algorithm="RS256", headers={"kid": "test-kid"})

    verifier = oidc.OidcVerifier(get_settings())
    claims = await verifier.verify_assertion(token, "test-client-id")
    assert claims.subject == "google-sub-1"
    assert claims.email == "Person@Example.com"
    assert claims.name == "Person Example"


@pytest.mark.asyncio
async def test_verify_assertion_rejects_wrong_audience(monkeypatch) -> None:
    private_key, jwks = _generate_jwks()
    _install_jwks(monkeypatch, jwks)
    token = jwt.encode(
        _claims(aud="someone-else"), private_key, algorithm="RS256", headers={"kid": "test-kid"}
    )
    with pytest.raises(AuthenticationFailedError):
        await oidc.OidcVerifier(get_settings()).verify_assertion(token, "test-client-id")


@pytest.mark.asyncio
async def test_verify_assertion_rejects_unknown_issuer(monkeypatch) -> None:
    private_key, jwks = _generate_jwks()
    _install_jwks(monkeypatch, jwks)
    token = jwt.encode(
        _claims(iss="https://evil.example"), private_key, algorithm="RS256", headers={"kid": "test-kid"}
    )
    with pytest.raises(AuthenticationFailedError):
        await oidc.OidcVerifier(get_settings()).verify_assertion(token, "test-client-id")


@pytest.mark.asyncio
async def test_verify_assertion_rejects_symmetric_algorithm(monkeypatch) -> None:
    _install_jwks(monkeypatch, {"keys": []})
    token = jwt.encode(_claims(), "shared-secret-long-enough-for-hs256!", algorithm="HS256")
    with pytest.raises(AuthenticationFailedError):
        await oidc.OidcVerifier(get_settings()).verify_assertion(token, "test-client-id")


@pytest.mark.asyncio
async def test_verify_assertion_rejects_unverified_email(monkeypatch) -> None:
    private_key, jwks = _generate_jwks()
    _install_jwks(monkeypatch, jwks)
    token = jwt.encode(
        _claims(email_verified="false"), private_key, algorithm="RS256", headers={"kid": "test-kid"}
    )
    with pytest.raises(AuthenticationFailedError):
        await oidc.OidcVerifier(get_settings()).verify_assertion(token, "test-client-id")


@pytest.mark.asyncio
async def test_jwks_cached_across_verifications(monkeypatch) -> None:
    private_key, jwks = _generate_jwks()
    calls = _install_jwks(monkeypatch, jwks)
    token = jwt.encode(_claims(), private_key, algorithm="RS256", headers={"kid": "test-kid"})
    verifier = oidc.OidcVerifier(get_settings())
    await verifier.verify_assertion(token, "test-client-id")
    await verifier.verify_assertion(token, "test-client-id")
    assert len(calls) == 1


def test_extract_claims_builds_name_from_parts() -> None:
    claims = oidc.extract_claims(
        {"sub": "s", "email": "a@example.com", "given_name": "Ada", "family_name": "Lovelace"}
    )
    assert claims.name == "Ada Lovelace"


def test_extract_claims_requires_email() -> None:
    with pytest.raises(AuthenticationFailedError):
        oidc.extract_claims({"sub": "s"})


def _install_token_response(monkeypatch, status_code: int, content: bytes) -> None:
    async def _fake_post(self, url, **kwargs) -> httpx.Response:
        return httpx.Response(status_code, content=content, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", _fake_post)


@pytest.mark.asyncio
async def test_exchange_code_returns_id_token(monkeypatch) -> None:
    _install_token_response(monkeypatch, 200, b'{"id_token": "abc"}')
    token = await oidc.OidcVerifier(get_settings()).exchange_code("code", "http://test/cb")
    assert token == "abc"


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [b"<html>gateway error</html>", b"[1, 2]", b"{}"])
async def test_exchange_code_rejects_unusable_body(monkeypatch, content: bytes) -> None:
    _install_token_response(monkeypatch, 200, content)
    with pytest.raises(AuthenticationFailedError):
        await oidc.OidcVerifier(get_settings()).exchange_code("code", "http://test/cb")
