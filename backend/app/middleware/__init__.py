"""
Middleware Package

Provides FastAPI middleware for:
- Error handling (ServiceError hierarchy rendered as JSON envelopes)
- Request logging with correlation ids

Usage:
    from app.middleware import setup_error_handling, NotFoundError

    setup_error_handling(app, debug=settings.DEBUG)

    raise NotFoundError("Review record not found")
"""

from app.middleware.error_handling import (
    AuthenticationError,
    ConflictError,
    ErrorHandlingMiddleware,
    InvalidInputError,
    InvariantViolationError,
    NotFoundError,
    ServiceError,
    handle_endpoint_errors,
    setup_error_handling,
)

__all__ = [
    "AuthenticationError",
    "ConflictError",
    "ErrorHandlingMiddleware",
    "InvalidInputError",
    "InvariantViolationError",
    "NotFoundError",
    "ServiceError",
    "handle_endpoint_errors",
    "setup_error_handling",
]
