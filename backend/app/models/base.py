"""
Strict Base Models for API Request/Response Validation

Base classes with strict validation settings for the contract between the
review API and its web client.

MOTIVATION:
    Parameter mismatches between frontend and backend are a common source of bugs.
    By enforcing strict validation:
    - Unknown fields are rejected with 422 (extra="forbid")
    - Required vs optional is enforced at the model level
    - Type mismatches fail fast with clear error messages

The web client speaks camelCase (`isCorrect`, `nextReviewDate`). Python code
uses snake_case attributes; the Camel* variants translate at the boundary
and accept either spelling on input.

Usage:
    class CompleteReviewRequest(CamelRequest):
        is_correct: StrictBool        # JSON: "isCorrect"

    class ReviewSummary(CamelResponse):
        next_review_date: date         # JSON: "nextReviewDate"

Architecture:
    API Request → StrictRequest (extra="forbid") → Route Handler
    DB Model → StrictResponse (extra="ignore") → API Response
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class StrictRequest(BaseModel):
    """
    Base model for API request bodies with strict validation.

    Rejects any fields not explicitly declared in the model, catching
    frontend typos and mismatches at request time rather than runtime.

    Features:
        - extra="forbid": Unknown fields raise 422 Unprocessable Entity
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
    """

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        validate_default=True,  # Validate defaults
        str_strip_whitespace=True,  # Clean string inputs
    )


class StrictResponse(BaseModel):
    """
    Base model for API response bodies.

    More lenient than StrictRequest: extra attributes on the source object
    (DB rows carry more columns than the API exposes) are ignored.

    Features:
        - extra="ignore": Silently ignores extra fields
        - validate_default=True: Validates default values
        - from_attributes=True: Allows ORM model conversion
    """

    model_config = ConfigDict(
        extra="ignore",  # Allow extra fields in responses
        validate_default=True,  # Validate defaults
        from_attributes=True,  # Enable ORM conversion
    )


class CamelRequest(StrictRequest):
    """StrictRequest whose JSON field names are camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CamelResponse(StrictResponse):
    """StrictResponse serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Common Response Patterns
# =============================================================================


class PaginationMeta(CamelResponse):
    """Pagination block of a list envelope."""

    page: int
    limit: int
    total: int
    total_pages: int


class ApiResponse(CamelResponse, Generic[DataT]):
    """
    Success envelope shared by every review endpoint.

        {"success": true, "message": "...", "data": ..., "pagination": {...}}

    `pagination` is only set on list endpoints.
    """

    success: bool = True
    message: str
    data: Optional[DataT] = None
    pagination: Optional[PaginationMeta] = None
