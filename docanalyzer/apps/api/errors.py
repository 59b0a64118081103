from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docanalyzer.apps.api.response import error_response
from docanalyzer.core.errors import (
    AuthenticationFailedError,
    BadRequestError,
    ConflictError,
    DocAnalyzerError,
    FileTooLargeError,
    ForbiddenError,
    InvalidCodeError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidTransitionError,
    NotFoundError,
    NotificationDeliveryError,
    OtpExpiredError,
    QueueUnavailableError,
    UnauthorizedError,
    UnsupportedFileTypeError,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}

# Stable (status, code) per domain error; the most specific class wins.
_DOMAIN_ERRORS: dict[type[DocAnalyzerError], tuple[int, str]] = {
    ConflictError: (409, "CONFLICT"),
    NotFoundError: (404, "NOT_FOUND"),
    UnsupportedFileTypeError: (415, "UNSUPPORTED_MEDIA_TYPE"),
    FileTooLargeError: (413, "PAYLOAD_TOO_LARGE"),
    BadRequestError: (400, "BAD_REQUEST"),
    InvalidCredentialsError: (401, "AUTH_INVALID_CREDENTIALS"),
    AuthenticationFailedError: (401, "AUTH_FEDERATION_FAILED"),
    OtpExpiredError: (400, "OTP_EXPIRED"),
    InvalidCodeError: (400, "OTP_INVALID"),
    InvalidOrExpiredTokenError: (400, "RESET_TOKEN_INVALID"),
    ForbiddenError: (403, "AUTH_FORBIDDEN"),
    UnauthorizedError: (401, "AUTH_UNAUTHORIZED"),
    InvalidTransitionError: (409, "INVALID_STATUS_TRANSITION"),
    NotificationDeliveryError: (502, "NOTIFICATION_FAILED"),
    QueueUnavailableError: (503, "QUEUE_ERROR"),
}


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def resolve_domain_error(exc: DocAnalyzerError) -> tuple[int, str]:
    for cls in type(exc).__mro__:
        if cls in _DOMAIN_ERRORS:
            return _DOMAIN_ERRORS[cls]
    return 500, "INTERNAL_ERROR"


async def domain_exception_handler(request: Request, exc: DocAnalyzerError) -> JSONResponse:
    status_code, code = resolve_domain_error(exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    payload = error_response(request=request, code=code, message=exc.message)
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Ensure Starlette-raised exceptions (404 routes, 405) share the envelope.
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    payload = error_response(
        request=request,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=payload, status_code=422)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.exception("unhandled_error path=%s", request.url.path)
    payload = error_response(
        request=request,
        code="INTERNAL_ERROR",
        message="Internal server error",
    )
    return JSONResponse(content=payload, status_code=500)
