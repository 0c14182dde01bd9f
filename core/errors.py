"""
core/errors.py -- Error taxonomy shared by every layer.

Every failure a caller can act on is an ApiError subclass carrying its HTTP
status and a machine-readable code. Stores, auth helpers, and route handlers
raise these; the single terminal handler in api/main.py turns them into the
uniform {success: false, ...} envelope.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, shop/, or cache/.
"""

from __future__ import annotations

from typing import Optional


class ApiError(Exception):
    """Base class for errors that map onto a specific HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, errors: Optional[list[dict]] = None) -> None:
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationFailed(ApiError):
    """Malformed or missing input. errors carries [{field, message}] entries."""

    status_code = 400
    code = "validation_failed"
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str, summary: Optional[str] = None) -> "ValidationFailed":
        return cls(summary or message, errors=[{"field": field, "message": message}])


class Unauthenticated(ApiError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required"


class Forbidden(ApiError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class InsufficientStock(ApiError):
    """Requested reduction exceeds the quantity on hand."""

    status_code = 400
    code = "insufficient_stock"
    default_message = "Insufficient stock"

    def __init__(self, available: float, requested: float) -> None:
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock. Available: {_fmt(available)}, Requested: {_fmt(requested)}")


class RateLimited(ApiError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests. Please wait and try again."


def _fmt(value: float) -> str:
    # 5.0 -> "5", 2.5 -> "2.5"
    return f"{value:g}"
