from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import UnauthorizedError


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def issue_session_token(user_id: str, *, now: datetime | None = None) -> str:
    """Sign a bearer token carrying the user id and an expiry.

    Tokens are not persisted; expiry is the only way they stop working.
    """
    settings = get_settings()
    issued_at = now or _utc_now()
    payload = {
        "sub": user_id,
        "iss": settings.jwt_issuer,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.session_ttl_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_session_token(token: str) -> str:
    # PyJWT compares signatures with hmac.compare_digest.
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise UnauthorizedError("Session token expired") from exc
    except jwt.PyJWTError as exc:
        raise UnauthorizedError() from exc
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise UnauthorizedError()
    return subject
