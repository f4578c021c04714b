"""Domain error taxonomy.

Every error carries a stable ``code`` and the HTTP status the API layer
renders it with. Only ``Unavailable`` is safe to retry automatically.
"""

from fastapi import status


class AppError(Exception):
    """Base application error."""

    code = "app_error"
    http_status = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        """Initialize error."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or missing input; the caller must correct and resubmit."""

    code = "validation_error"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidState(AppError):
    """Operation is not legal in the entity's current lifecycle state."""

    code = "invalid_state"
    http_status = status.HTTP_409_CONFLICT


class BudgetExceeded(AppError):
    """Approval would push a category's realized amount past its allocation."""

    code = "budget_exceeded"
    http_status = status.HTTP_409_CONFLICT


class NotFound(AppError):
    """Referenced entity does not exist."""

    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class Conflict(AppError):
    """Operation conflicts with existing data."""

    code = "conflict"
    http_status = status.HTTP_409_CONFLICT


class Unavailable(AppError):
    """Transient infrastructure failure or timeout."""

    code = "unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class Unauthorized(AppError):
    """Missing, invalid or expired credentials."""

    code = "unauthorized"
    http_status = status.HTTP_401_UNAUTHORIZED


class Forbidden(AppError):
    """Authenticated user lacks permission for the operation."""

    code = "forbidden"
    http_status = status.HTTP_403_FORBIDDEN


__all__ = [
    "AppError",
    "ValidationError",
    "InvalidState",
    "BudgetExceeded",
    "NotFound",
    "Conflict",
    "Unavailable",
    "Unauthorized",
    "Forbidden",
]
