"""
Domain error taxonomy.

Services raise these exceptions; the application maps each one to an HTTP
status and a generic public message (see ``piiquante.main``). ``message``
and ``context`` are for the logs only and are never sent to the client.
"""

from typing import Any


class PiiquanteError(Exception):
    """Base exception for every error the API reports deliberately."""

    status_code: int = 500
    public_message: str = "An unexpected error occurred"
    default_code: str = "PIIQUANTE_ERROR"

    def __init__(self, message: str, code: str | None = None, **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        return {"error": self.public_message, "code": self.code}


class InvalidInputError(PiiquanteError):
    """Malformed body, bad vote value, weak password, rejected upload."""

    status_code = 400
    public_message = "Invalid request"
    default_code = "INVALID_INPUT"

    def to_dict(self) -> dict[str, Any]:
        # Input errors describe the caller's own data, so the reason is safe to return.
        return {"error": self.message, "code": self.code}


class UnauthenticatedError(PiiquanteError):
    """Missing, malformed, expired or badly signed token, or bad credentials."""

    status_code = 401
    public_message = "Authentication failed"
    default_code = "UNAUTHENTICATED"


class ForbiddenError(PiiquanteError):
    """The requester is authenticated but does not own the record."""

    status_code = 403
    public_message = "You are not allowed to modify this sauce"
    default_code = "FORBIDDEN"


class NotFoundError(PiiquanteError):
    status_code = 404
    public_message = "Sauce not found"
    default_code = "NOT_FOUND"


class ConflictError(PiiquanteError):
    """Duplicate email, or a record changed between read and write."""

    status_code = 409
    public_message = "The request conflicts with the current state of the resource"
    default_code = "CONFLICT"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class UnavailableError(PiiquanteError):
    """Persistence or asset storage failed."""

    status_code = 503
    public_message = "Service temporarily unavailable"
    default_code = "UNAVAILABLE"
