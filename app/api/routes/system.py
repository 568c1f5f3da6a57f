from fastapi import APIRouter, Request

from api.dependencies.rate_limits import SYSTEM_RATE_LIMIT, get_limiter
from infrastructure.services.dependencies import SettingsDep

router = APIRouter(tags=["System"])
limiter = get_limiter()


# Load balancer health checks poll these every few seconds.
@router.get("/version")
@limiter.limit(SYSTEM_RATE_LIMIT)
def get_version(request: Request, settings: SettingsDep):  # pylint: disable=unused-argument
    """Get the version of the application."""
    return {"version": settings.GIT_SHA}


@router.get("/health")
@limiter.limit(SYSTEM_RATE_LIMIT)
def get_health(request: Request):  # pylint: disable=unused-argument
    """Healthcheck endpoint."""
    return {"status": "ok"}
