from __future__ import annotations

from datetime import datetime, timedelta, timezone
import secrets

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import InvalidCodeError, OtpExpiredError
from docanalyzer.domain.models import User


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on read; stored values are always UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def generate_otp(length: int | None = None) -> str:
    # Uniform decimal digits; kept as a string so "007" never equals "7".
    size = length or get_settings().otp_length
    return "".join(str(secrets.randbelow(10)) for _ in range(size))


def issue_otp(user: User, *, now: datetime | None = None) -> str:
    # A new challenge always replaces the previous one.
    settings = get_settings()
    code = generate_otp()
    user.otp_code = code
    user.otp_expires_at = (now or _utc_now()) + timedelta(minutes=settings.otp_ttl_minutes)
    return code


def check_otp(user: User, candidate: object, *, now: datetime | None = None) -> None:
    # Expiry wins over mismatch so clients know to request a new code.
    current = now or _utc_now()
    if user.otp_expires_at is None or _as_utc(user.otp_expires_at) < current:
        raise OtpExpiredError()
    stored = user.otp_code or ""
    # Codes are strings; a number never matches, whatever its digits.
    if not isinstance(candidate, str) or not stored:
        raise InvalidCodeError()
    if not secrets.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8")):
        raise InvalidCodeError()


def clear_otp(user: User) -> None:
    user.otp_code = None
    user.otp_expires_at = None
