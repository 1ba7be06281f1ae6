"""
Domain errors raised by the service layer.

Each error carries the HTTP status and machine-readable code it maps to;
``app.main`` registers a single handler that renders them as::

    {"success": false, "error": {"code": "...", "message": "..."}}

Routers never translate these themselves.
"""


class BlogAPIError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BlogAPIError):
    """Missing or malformed input."""

    status_code = 400
    code = "validation_error"


class ConflictError(BlogAPIError):
    """Uniqueness violation (username, email, slug)."""

    status_code = 400
    code = "conflict"


class AuthenticationError(BlogAPIError):
    """Missing, malformed, expired or forged token; bad credentials."""

    status_code = 401
    code = "unauthenticated"


class PermissionDeniedError(BlogAPIError):
    """Authenticated, but not the author of the resource."""

    status_code = 401
    code = "not_authorized"


class NotFoundError(BlogAPIError):
    status_code = 404
    code = "not_found"
