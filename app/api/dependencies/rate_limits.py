from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

# Cron providers call from a small set of addresses, so limits are per client IP.
limiter = Limiter(key_func=get_remote_address)

SYSTEM_RATE_LIMIT = "50/minute"
TRIGGER_RATE_LIMIT = "30/minute"


async def rate_limit_handler(_request: Request, exc: Exception):
    """Return 429 with a JSON body when a route limit is exceeded."""
    if isinstance(exc, RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"message": "Rate limit exceeded", "limit": str(exc.detail)},
        )


def setup_rate_limiter(app: FastAPI):
    """Attach the shared limiter and its 429 handler to the application."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)


def get_limiter() -> Limiter:
    return limiter
