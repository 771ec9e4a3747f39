"""
Domain exceptions.

Each class carries the HTTP status it renders as; the handlers in
``app.middleware.error_handler`` turn them into ``{"error", "message",
"path"}`` bodies, with ``error`` set to the class name.
"""


class AppException(Exception):
    """Base application exception."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        """Initialize exception with an optional message and status override."""
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequestException(AppException):
    """The request is well-formed but breaks a domain rule (400)."""

    status_code = 400
    default_message = "Bad request"


class UnauthorizedException(AppException):
    """Missing or wrong credentials (401)."""

    status_code = 401
    default_message = "Unauthorized"


class ForbiddenException(AppException):
    """Role or ownership check failed (403)."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundException(AppException):
    status_code = 404
    default_message = "Resource not found"


class ConflictException(AppException):
    """Duplicate registration or a concurrent modification (409)."""

    status_code = 409
    default_message = "Conflict"


class InvalidTransitionException(BadRequestException):
    """Requested appointment status is not reachable from the current one."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change appointment status from '{current}' to '{requested}'.")


class InvalidDateWindowException(BadRequestException):
    default_message = "Appointment date is outside the allowed window"


class ExternalServiceException(AppException):
    """
    The payment gateway, object storage or SMTP server failed.

    Local writes made before the call are kept; ``service`` names the
    upstream for the error log.
    """

    default_message = "External service error"

    def __init__(self, message: str | None = None, service: str | None = None):
        self.service = service
        super().__init__(message)
