from __future__ import annotations

import pytest

from docanalyzer.apps.api.errors import resolve_domain_error
from docanalyzer.core import errors


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (errors.ConflictError(), (409, "CONFLICT")),
        (errors.NotFoundError(), (404, "NOT_FOUND")),
        (errors.InvalidCredentialsError(), (401, "AUTH_INVALID_CREDENTIALS")),
        (errors.OtpExpiredError(), (400, "OTP_EXPIRED")),
        (errors.InvalidCodeError(), (400, "OTP_INVALID")),
        (errors.InvalidOrExpiredTokenError(), (400, "RESET_TOKEN_INVALID")),
        (errors.ForbiddenError(), (403, "AUTH_FORBIDDEN")),
        (errors.UnauthorizedError(), (401, "AUTH_UNAUTHORIZED")),
        (errors.UnsupportedFileTypeError(), (415, "UNSUPPORTED_MEDIA_TYPE")),
        (errors.FileTooLargeError(), (413, "PAYLOAD_TOO_LARGE")),
        (errors.QueueUnavailableError(), (503, "QUEUE_ERROR")),
        (errors.DocAnalyzerError(), (500, "INTERNAL_ERROR")),
    ],
)
def test_domain_errors_map_to_stable_status(exc, expected) -> None:
    assert resolve_domain_error(exc) == expected


def test_default_messages_used_when_none_given() -> None:
    assert errors.ConflictError().message == "User already exists"
    assert errors.InvalidCredentialsError().message == "Invalid credentials"
    assert errors.NotFoundError("Document not found").message == "Document not found"
