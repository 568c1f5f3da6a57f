"""Trigger endpoint for the reminder pipeline.

An external cron (or any HTTP scheduler) calls ``POST /cron/send-notifications``
with ``Authorization: Bearer <CRON_SECRET>``; every call runs the pipeline
once over the obligations that are due.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.dependencies.rate_limits import (
    SYSTEM_RATE_LIMIT,
    TRIGGER_RATE_LIMIT,
    get_limiter,
)
from infrastructure.logging import get_module_logger
from infrastructure.security.cron import verify_cron_secret
from infrastructure.services.dependencies import ReminderServiceDep

logger = get_module_logger()
router = APIRouter(prefix="/cron", tags=["Notifications"])
limiter = get_limiter()


@router.post("/send-notifications", dependencies=[Depends(verify_cron_secret)])
@limiter.limit(TRIGGER_RATE_LIMIT)
def send_notifications(
    request: Request, service: ReminderServiceDep
):  # pylint: disable=unused-argument
    """Send every reminder that is due.

    Returns:
        Obligation counts by terminal status, recipient totals and errors
        for this run
    """
    try:
        summary = service.run_due(trigger="cron")
    except Exception as e:
        logger.error("notification_trigger_failed", error=str(e))
        raise HTTPException(
            status_code=500, detail="Failed to process notifications"
        ) from e
    return summary.to_dict()


@router.get("/send-notifications")
@limiter.limit(SYSTEM_RATE_LIMIT)
def send_notifications_health(request: Request):  # pylint: disable=unused-argument
    """Static health payload. Never processes obligations."""
    return {
        "status": "ok",
        "endpoint": "/api/v1/cron/send-notifications",
        "method": "POST",
    }
