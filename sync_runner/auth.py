"""
Authentication Module

Handles API authentication using a shared secret bearer token.
Uses centralized config for settings validation.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def get_runner_secret() -> str:
    """Get the runner API secret from validated config."""
    if not settings.runner_api_secret:
        raise ValueError(
            "RUNNER_API_SECRET environment variable is required for authentication"
        )
    return settings.runner_api_secret


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> Optional[HTTPAuthorizationCredentials]:
    """
    Verify shared secret token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if not settings.auth_required:
        return credentials

    try:
        expected_secret = get_runner_secret()
    except ValueError:
        raise HTTPException(
            status_code=500,
            detail="Server authentication not configured"
        )

    if credentials is None or credentials.credentials != expected_secret:
        logger.warning("Rejected request with missing or invalid bearer token")
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication token"
        )

    return credentials
