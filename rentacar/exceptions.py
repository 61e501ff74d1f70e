"""
Error types raised by the rental services.

Views translate these into JSON responses; ``status_code`` is the HTTP
status the error maps to and ``kind`` the machine readable label.
"""

from __future__ import annotations


class RentacarError(Exception):
    """Base class for failures raised deliberately by the services."""

    kind = "error"
    status_code = 500
    default_message = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RentacarError):
    """Malformed or out-of-policy input: bad date ranges, non-positive amounts."""

    kind = "validation_error"
    status_code = 400
    default_message = "Invalid request."


class NotFoundError(RentacarError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found."


class ConflictError(RentacarError):
    """State, availability or overlap violation. Never retried automatically."""

    kind = "conflict"
    status_code = 409
    default_message = "The request conflicts with the current state."


class ForbiddenError(RentacarError):
    kind = "forbidden"
    status_code = 403
    default_message = "Access denied."


class InternalError(RentacarError):
    """Unexpected failure. The message is shown to callers, so keep it opaque."""

    kind = "internal_error"
    status_code = 500
    default_message = "Internal server error."
