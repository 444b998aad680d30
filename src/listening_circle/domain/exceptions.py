"""
Domain exceptions - Semantic error types for email-code authentication.

Every user-facing failure carries an ErrorKind from a closed set, so the
API boundary can branch on the kind instead of matching message strings.
Repository signals (DuplicateEmail, DisplayNameTaken) are resolved inside
the domain and never reach a caller.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of error kinds returned to callers."""

    VALIDATION = "validation_error"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    SERVICE_UNAVAILABLE = "service_unavailable"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_FOUND = "not_found"


class AuthError(Exception):
    """Base class for authentication domain errors."""

    kind: ErrorKind = ErrorKind.VALIDATION
    default_message = "An error occurred"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed email, code or display name. Raised before any side effect."""

    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"


class InvalidOrExpiredCode(AuthError):
    """Code missing, mismatched, expired or already used.

    Deliberately undifferentiated so responses cannot be used to narrow
    a guessing attack.
    """

    kind = ErrorKind.INVALID_OR_EXPIRED_CODE
    default_message = "Invalid or expired code"

    def __init__(self) -> None:
        super().__init__(self.default_message)


class ServiceUnavailable(AuthError):
    """Required email delivery is misconfigured or failed."""

    kind = ErrorKind.SERVICE_UNAVAILABLE
    default_message = "Email service is unavailable. Please try again later."


class ConflictError(AuthError):
    """Requested display name is owned by another user."""

    kind = ErrorKind.CONFLICT
    default_message = "This display name is already taken"


class RateLimited(AuthError):
    """Too many codes requested for one email within the window."""

    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many attempts. Please wait a few minutes."


class NotAuthenticated(AuthError):
    """Session cookie missing, malformed, forged or expired."""

    kind = ErrorKind.NOT_AUTHENTICATED
    default_message = "Not authenticated"


class NotFound(AuthError):
    """Requested resource does not exist for the session user."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class NonFatalIntegrationError(Exception):
    """Best-effort integration failed (mailing list). Logged, never returned."""

    pass


class EmailDeliveryError(Exception):
    """Transactional email provider rejected or failed the send."""

    pass


class DuplicateEmail(Exception):
    """Repository signal: a user row with this email already exists."""

    pass


class DisplayNameTaken(Exception):
    """Repository signal: display name unique constraint violated."""

    pass
