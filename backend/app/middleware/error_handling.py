"""
Enhanced Error Handling Middleware

Provides consistent, informative error responses across the API.

Features:
- Standardized error envelope ({"success": false, "message": ...})
- Correlation IDs for log tracking
- Sanitized responses (hides internal details in production)
- Custom exception classes for the review scheduler's error taxonomy

Usage:
    from app.middleware.error_handling import setup_error_handling, NotFoundError

    # Add middleware and handlers to app
    setup_error_handling(app, debug=settings.DEBUG)

    # Raise custom exceptions
    raise NotFoundError("Review record not found")

How Exception Interception Works:
    This middleware uses ASGI middleware architecture (via Starlette's
    BaseHTTPMiddleware), not special Python exception hooks.

    The `dispatch()` method wraps `call_next(request)` in a try/except block.
    Since `call_next()` executes all downstream code (other middleware, route
    handlers, dependencies, services), any unhandled exception bubbles up
    through normal Python exception propagation and is caught here.

    Exception handling hierarchy:
        - HTTPException / RequestValidationError: rendered by the exception
          handlers registered in setup_error_handling()
        - ServiceError: Custom exceptions → structured JSON response
        - Exception: Catch-all for unexpected errors → sanitized response

    Caveat: BaseHTTPMiddleware cannot catch exceptions raised after the
    response body starts streaming (not an issue for JSON APIs).
"""

import functools
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Schema
# =============================================================================


class ErrorResponse(BaseModel):
    """Standardized error response."""

    success: bool = False
    error: str  # Error code (e.g., "not_found")
    message: str  # Human-readable message
    error_id: str  # For log correlation
    details: Optional[dict] = None  # Additional context (sanitized)
    timestamp: datetime


# =============================================================================
# Custom Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base exception for service errors.

    Provides consistent error handling with:
    - HTTP status code
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise ServiceError("Database connection failed", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: int = None,
        error_code: str = None,
        details: dict = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class InvalidInputError(ServiceError):
    """
    Input validation error.

    Raised before any transition is computed when request values are out of
    their documented bounds (ratings outside 1-5, negative time spent,
    inverted date ranges).
    """

    status_code = 422
    error_code = "invalid_input"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a record id does not resolve to a state owned by the caller.
    Foreign records are reported the same way as missing ones.
    """

    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """
    Concurrent write conflict.

    Raised when an optimistic-concurrency version check keeps failing after
    the configured retries. The caller should re-read and retry.
    """

    status_code = 409
    error_code = "conflict"


class AuthenticationError(ServiceError):
    """
    Missing or invalid caller identity.

    Raised when the upstream gateway did not supply a user id, or the
    service API key does not match.
    """

    status_code = 401
    error_code = "unauthenticated"


class InvariantViolationError(ServiceError):
    """
    Stored state violates a scheduler invariant.

    Indicates a corrupted write path upstream (e.g. a mastery level outside
    0-4). Never clamped or repaired silently.
    """

    status_code = 500
    error_code = "invariant_violation"


# =============================================================================
# Error Handling Middleware
# =============================================================================


def _error_content(
    error_code: str,
    message: str,
    error_id: str,
    details: Optional[dict] = None,
) -> dict[str, Any]:
    return {
        "success": False,
        "error": error_code,
        "message": message,
        "error_id": error_id,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    - Catches unhandled exceptions
    - Logs with correlation ID
    - Returns consistent error format
    - Hides internal details in production
    """

    def __init__(self, app, debug: bool = False):
        """
        Initialize middleware.

        Args:
            app: FastAPI/Starlette application
            debug: Whether to include stack traces in responses
        """
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any errors."""
        error_id = str(uuid4())[:8]

        try:
            response = await call_next(request)
            return response

        except HTTPException:
            # Let FastAPI handle HTTP exceptions
            raise

        except ServiceError as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"[{error_id}] {e.error_code}: {e.message}",
                extra={
                    "error_id": error_id,
                    "error_code": e.error_code,
                    "path": request.url.path,
                    "method": request.method,
                    "details": e.details,
                },
            )

            # Client errors carry actionable details; server errors only in debug
            details = e.details if (self.debug or e.status_code < 500) else None
            return JSONResponse(
                status_code=e.status_code,
                content=jsonable_encoder(
                    _error_content(e.error_code, e.message, error_id, details)
                ),
            )

        except Exception as e:
            # Log full traceback for unexpected errors
            logger.error(
                f"[{error_id}] Unhandled error: {type(e).__name__}: {e}",
                extra={
                    "error_id": error_id,
                    "path": request.url.path,
                    "method": request.method,
                    "traceback": traceback.format_exc(),
                },
            )

            details = None
            if self.debug:
                details = {
                    "exception": type(e).__name__,
                    "message": str(e),
                    "traceback": traceback.format_exc(),
                }

            return JSONResponse(
                status_code=500,
                content=_error_content(
                    "internal_server_error",
                    "An unexpected error occurred",
                    error_id,
                    details,
                ),
            )


# =============================================================================
# Exception Handlers
# =============================================================================


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as InvalidInput envelopes."""
    error_id = str(uuid4())[:8]
    logger.warning(f"[{error_id}] invalid_input on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=InvalidInputError.status_code,
        content=jsonable_encoder(
            _error_content(
                InvalidInputError.error_code,
                "Request validation failed",
                error_id,
                {"errors": exc.errors()},
            )
        ),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render HTTP exceptions in the same envelope as service errors."""
    error_id = str(uuid4())[:8]
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content("http_error", str(exc.detail), error_id),
        headers=getattr(exc, "headers", None),
    )


# =============================================================================
# Setup Function
# =============================================================================


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Configure error handling on the FastAPI app.

    Args:
        app: FastAPI application instance
        debug: Whether to include stack traces in responses
    """
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    logger.info(f"Error handling middleware enabled (debug={debug})")


# =============================================================================
# Helper Functions
# =============================================================================


def handle_endpoint_errors(operation: str) -> Callable:
    """
    Decorator for route handlers: log and wrap unexpected failures.

    ServiceError and HTTPException pass through untouched so the middleware
    can render them with their own status codes. Anything else is logged
    with the operation name and re-raised as a 500 ServiceError.

    Usage:
        @router.get("/today")
        @handle_endpoint_errors("Get today's review targets")
        async def get_today(...):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (ServiceError, HTTPException):
                raise
            except Exception as e:
                logger.error(f"{operation} failed: {type(e).__name__}: {e}")
                raise ServiceError(
                    f"{operation} failed",
                    details={"exception": type(e).__name__},
                ) from e

        return wrapper

    return decorator
