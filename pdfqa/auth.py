"""Bearer token check for API routes."""
from functools import wraps
from typing import Optional

import structlog
from quart import request

from pdfqa import config
from pdfqa.errors import AuthError

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


def check_bearer_token(header: Optional[str], expected: Optional[str]) -> None:
    """Validate an Authorization header against the configured token.

    Raises:
        AuthError: 500 when no token is configured, 401 for a bad header
    """
    if not expected:
        logger.error("api_auth_token_not_configured")
        raise AuthError("Authentication not configured", status=500)

    if not header:
        raise AuthError("Missing authorization header")

    if not header.startswith(BEARER_PREFIX):
        raise AuthError("Invalid authorization format. Expected: Bearer <token>")

    if header[len(BEARER_PREFIX):] != expected:
        raise AuthError("Invalid authentication token")


def require_auth(view):
    """Reject requests without a valid bearer token."""

    @wraps(view)
    async def wrapper(*args, **kwargs):
        check_bearer_token(request.headers.get("Authorization"), config.API_AUTH_TOKEN)
        return await view(*args, **kwargs)

    return wrapper
