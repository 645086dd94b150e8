"""
FastAPI Dependencies

Caller identity and API key checks shared by the review routers.

Authentication itself happens upstream: the gateway in front of this
service verifies the session and forwards the user id in a header
(settings.USER_ID_HEADER, default X-User-Id). Request bodies never carry a
user id.
"""

from fastapi import Depends, Header
from fastapi.security import APIKeyHeader

from app.config import settings
from app.middleware.error_handling import AuthenticationError

# API Key header scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_review_api_key(
    api_key: str | None = Depends(api_key_header),
) -> str:
    """
    Verify the service API key sent by the gateway.

    If REVIEW_API_KEY is not configured (empty string), the check is
    disabled (development mode).

    Raises:
        AuthenticationError: 401 if the key is missing or wrong
    """
    if not settings.REVIEW_API_KEY:
        return "dev-mode"

    if not api_key:
        raise AuthenticationError("Missing API key. Provide X-API-Key header.")

    if api_key != settings.REVIEW_API_KEY:
        raise AuthenticationError("Invalid API key")

    return api_key


async def get_current_user_id(
    x_user_id: str | None = Header(None, alias=settings.USER_ID_HEADER),
    _api_key: str = Depends(verify_review_api_key),
) -> str:
    """
    Resolve the calling user from the gateway header.

    Raises:
        AuthenticationError: 401 if no user id was forwarded
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise AuthenticationError(f"Missing {settings.USER_ID_HEADER} header")
    return user_id

