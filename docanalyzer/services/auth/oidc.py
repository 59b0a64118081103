from __future__ import annotations

from dataclasses import dataclass
import asyncio
import json
import logging
import time
from typing import Any, Protocol

import httpx
import jwt

from docanalyzer.core.config import Settings, get_settings
from docanalyzer.core.errors import AuthenticationFailedError


logger = logging.getLogger(__name__)

_ALLOWED_ALGS = {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512"}

_jwks_cache: dict[str, tuple[float, dict[str, Any]]] = {}
_jwks_lock = asyncio.Lock()


@dataclass(frozen=True)
class FederatedClaims:
    subject: str
    email: str
    name: str | None


class IdentityProviderVerifier(Protocol):
    async def verify_assertion(self, token: str, audience: str) -> FederatedClaims:
        ...

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        ...


def extract_claims(claims: dict[str, Any]) -> FederatedClaims:
    # Normalize identity claims; an assertion without a usable email is rejected.
    subject = claims.get("sub")
    if not subject:
        raise AuthenticationFailedError("ID token missing subject")
    email = claims.get("email")
    if not email:
        raise AuthenticationFailedError("ID token missing email")
    # Some providers send email_verified as the string "false".
    if str(claims.get("email_verified", True)).lower() == "false":
        raise AuthenticationFailedError("Email not verified by identity provider")
    name = claims.get("name")
    if not name:
        given = claims.get("given_name")
        family = claims.get("family_name")
        if given or family:
            name = " ".join([part for part in [given, family] if part])
    return FederatedClaims(subject=str(subject), email=str(email), name=name or None)


def _select_jwk(jwks: dict[str, Any], kid: str | None) -> dict[str, Any]:
    # Select the appropriate JWK based on kid header.
    keys = jwks.get("keys") or []
    if kid:
        for key in keys:
            if key.get("kid") == kid:
                return key
    if len(keys) == 1:
        return keys[0]
    raise ValueError("No matching JWK for token")


def _jwk_to_key(jwk: dict[str, Any], alg: str) -> Any:
    # Convert a JWK payload into a cryptography key for PyJWT.
    payload = json.dumps(jwk)
    if alg.startswith("RS"):
        return jwt.algorithms.RSAAlgorithm.from_jwk(payload)
    if alg.startswith("ES"):
        return jwt.algorithms.ECAlgorithm.from_jwk(payload)
    raise ValueError("Unsupported JWT algorithm")


class OidcVerifier:
    """Validate ID tokens and exchange authorization codes with an OIDC provider."""

    def __init__(self, settings: Settings) -> None:
        self._client_id = settings.google_client_id or ""
        self._client_secret = settings.google_client_secret or ""
        self._issuers = settings.oauth_issuer_set()
        self._jwks_url = settings.oauth_jwks_url
        self._token_url = settings.oauth_token_url
        self._timeout = settings.ext_call_timeout_ms / 1000
        self._jwks_ttl = settings.oauth_jwks_cache_ttl_s
        self._leeway = settings.oauth_clock_skew_seconds

    async def _fetch_jwks(self) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(self._jwks_url)
        response.raise_for_status()
        return response.json()

    async def _get_jwks(self, *, refresh: bool = False) -> dict[str, Any]:
        # Cache provider keys; a kid miss forces one refresh for key rotation.
        async with _jwks_lock:
            entry = _jwks_cache.get(self._jwks_url)
            if entry and not refresh and entry[0] > time.time():
                return entry[1]
            jwks = await self._fetch_jwks()
            _jwks_cache[self._jwks_url] = (time.time() + self._jwks_ttl, jwks)
            return jwks

    async def _resolve_key(self, alg: str, kid: str | None) -> Any:
        jwks = await self._get_jwks()
        try:
            jwk = _select_jwk(jwks, kid)
        except ValueError:
            jwk = _select_jwk(await self._get_jwks(refresh=True), kid)
        return _jwk_to_key(jwk, alg)

    async def verify_assertion(self, token: str, audience: str) -> FederatedClaims:
        try:
            header = jwt.get_unverified_header(token)
            alg = header.get("alg")
            if not alg or alg not in _ALLOWED_ALGS:
                raise ValueError("Unsupported token algorithm")
            key = await self._resolve_key(alg, header.get("kid"))
            claims = jwt.decode(
                token,
                key,
                algorithms=[alg],
                audience=audience,
                leeway=self._leeway,
                options={"require": ["exp", "iss", "aud", "sub"]},
            )
            if claims.get("iss") not in self._issuers:
                raise ValueError("Unexpected token issuer")
        except (jwt.PyJWTError, ValueError, httpx.HTTPError) as exc:
            logger.warning("oidc_id_token_rejected reason=%s", exc.__class__.__name__)
            raise AuthenticationFailedError() from exc
        return extract_claims(claims)

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        # Exchange authorization code for tokens via the provider token endpoint.
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._token_url, data=payload)
        except httpx.HTTPError as exc:
            logger.warning("oidc_token_exchange_unreachable")
            raise AuthenticationFailedError() from exc
        if response.status_code >= 400:
            logger.warning("oidc_token_exchange_failed status=%s", response.status_code)
            raise AuthenticationFailedError()
        try:
            id_token = response.json().get("id_token")
        except (ValueError, AttributeError) as exc:
            logger.warning("oidc_token_exchange_malformed status=%s", response.status_code)
            raise AuthenticationFailedError() from exc
        if not id_token:
            raise AuthenticationFailedError("Token exchange response missing id_token")
        return id_token


def get_identity_verifier() -> IdentityProviderVerifier:
    return OidcVerifier(get_settings())
