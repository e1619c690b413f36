"""Exception taxonomy rendered into the error envelope by the app handlers."""

from typing import Any

__all__ = [
    "ApiError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "InvalidTokenError",
    "NotFoundError",
    "RateLimitError",
    "StorageError",
    "ValidationError",
]


class ApiError(Exception):
    status_code: int = 400
    default_message: str = "Bad request"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.headers = headers
        super().__init__(self.message)


class ValidationError(ApiError):
    """Malformed input caught by hand; schema failures go through FastAPI as 422."""

    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Unauthorized. Please login."

    def __init__(self, message: str | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ApiError):
    status_code = 403
    default_message = "You do not have permission to access this resource."


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found."

    @classmethod
    def of(cls, resource: str) -> "NotFoundError":
        return cls(f"{resource} not found.")


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource already exists."


class RateLimitError(ApiError):
    status_code = 429
    default_message = "Rate limit exceeded. Too many requests. Please try again later."

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            details={"retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


class StorageError(ApiError):
    status_code = 500
    default_message = "Internal server error. Please try again later."


class InvalidTokenError(Exception):
    """Raised by the token codec; never shown to clients as-is."""
