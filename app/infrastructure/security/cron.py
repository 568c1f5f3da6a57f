"""Shared-secret authentication for trigger endpoints."""

import hmac
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from infrastructure.configuration import Settings
from infrastructure.services.providers import get_settings

logger = structlog.get_logger()
cron_bearer = HTTPBearer(auto_error=False)


def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(cron_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``.

    Requests are rejected when no secret is configured.

    Raises:
        HTTPException: 401 if the header is missing or does not match
    """
    expected = settings.server.CRON_SECRET
    if not expected:
        logger.warning("cron_secret_not_configured")
        raise HTTPException(status_code=401, detail="Unauthorized")

    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode(), expected.encode()
    ):
        logger.warning("cron_authentication_failed")
        raise HTTPException(status_code=401, detail="Unauthorized")
