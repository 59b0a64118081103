from __future__ import annotations


class DocAnalyzerError(Exception):
    """Base error for DocAnalyzer."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConflictError(DocAnalyzerError):
    """Resource already exists in a state that forbids the operation."""

    default_message = "User already exists"


class NotFoundError(DocAnalyzerError):
    """No matching user, document, or token."""

    default_message = "Not found"


class BadRequestError(DocAnalyzerError):
    """Request is well-formed but semantically invalid."""


class InvalidCredentialsError(DocAnalyzerError):
    """Password login failed; the message never reveals which part was wrong."""

    default_message = "Invalid credentials"


class AuthenticationFailedError(DocAnalyzerError):
    """Federated identity assertion could not be verified."""

    default_message = "Federated authentication failed"


class OtpExpiredError(DocAnalyzerError):
    """One-time code window has passed."""

    default_message = "OTP expired"


class InvalidCodeError(DocAnalyzerError):
    """One-time code does not match the stored challenge."""

    default_message = "Invalid OTP"


class InvalidOrExpiredTokenError(DocAnalyzerError):
    """Password reset token is unknown, already used, or expired."""

    default_message = "Invalid or expired reset token"


class ForbiddenError(DocAnalyzerError):
    """Authenticated user lacks ownership or a grant for the document."""

    default_message = "Not authorized to access this document"


class UnauthorizedError(DocAnalyzerError):
    """Missing, malformed, or expired session token."""

    default_message = "Not authorized"


class InvalidTransitionError(DocAnalyzerError):
    """Analysis status change outside pending -> processing -> completed|failed."""

    default_message = "Invalid analysis status transition"


class NotificationDeliveryError(DocAnalyzerError):
    """Outbound email could not be delivered."""

    default_message = "Failed to deliver email"


class QueueUnavailableError(DocAnalyzerError):
    """Analysis queue could not accept the job."""

    default_message = "Analysis queue unavailable"


class UnsupportedFileTypeError(BadRequestError):
    """Upload MIME type is not on the allow list."""

    default_message = "Invalid file type"


class FileTooLargeError(BadRequestError):
    """Upload exceeds the configured size limit."""

    default_message = "File too large"
