"""
Authentication

Operator API key check for admin operations. Identity management itself is
handled by the hosting application; this service only compares the key it
forwards against the configured one.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request, status


def authorize_operator(api_key: Optional[str], expected_key: Optional[str]) -> None:
    """
    Verify an operator API key.

    Raises:
        HTTPException: If admin access is not configured, or the key is missing or wrong
    """
    if not expected_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin operations not configured (ADMIN_API_KEY not set in environment)",
        )

    if not api_key or not hmac.compare_digest(api_key, expected_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )


async def require_operator(
    request: Request,
    x_api_key: Optional[str] = Header(None, description="Operator API key"),
) -> bool:
    """FastAPI dependency guarding operator-only routes."""
    authorize_operator(x_api_key, request.app.state.settings.admin_api_key)
    return True
