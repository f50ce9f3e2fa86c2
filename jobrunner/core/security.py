"""
Shared-secret protection for the cron and job administration endpoints
"""

import secrets
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jobrunner.core.config import Settings, get_settings

bearer_scheme = HTTPBearer(auto_error=False)


def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Checks `Authorization: Bearer <CRON_SECRET>`.

    External cron services (or an operator) call the job endpoints with the
    shared secret. With no secret configured the endpoints stay closed.
    """
    expected = settings.CRON_SECRET
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured"
        )

    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode("utf8"),
        expected.encode("utf8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_cron_secret():
    """
    Dependency to require the cron secret
    Usage: app.include_router(router, dependencies=[require_cron_secret()])
    """
    return Depends(verify_cron_secret)
