"""
Error taxonomy shared by the auth, store and api layers.

Every error carries the HTTP status it maps to and a message that is safe
to show to a client. Internal diagnostics go to the log, never to `message`.
"""

from typing import Optional


class BookwormError(Exception):
    """Base exception for Bookworm errors."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(BookwormError):
    """Missing or malformed input."""

    status_code = 400


class AuthError(BookwormError):
    """Bad credentials or token."""

    status_code = 401


class CredentialsError(AuthError):
    """Login rejected: unknown email or wrong password."""

    status_code = 400


class Unauthorized(AuthError):
    """Request rejected by the auth gate."""

    CLIENT_MESSAGE = "Authentication required"

    def __init__(self, reason: str = ""):
        # reason is for logs only; the client always sees the same message
        self.reason = reason
        super().__init__(self.CLIENT_MESSAGE)


class TokenError(AuthError):
    """Token could not be verified."""


class MalformedToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class NotFound(BookwormError):
    status_code = 404


class Forbidden(BookwormError):
    """Requester does not own the resource. Kept apart from ``Unauthorized``, which only the auth gate raises."""

    status_code = 401


class InternalError(BookwormError):
    """Unexpected store or host failure."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", detail: Optional[str] = None):
        super().__init__(message, detail=detail)
