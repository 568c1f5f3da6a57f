from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies.rate_limits import setup_rate_limiter
from api.router import api_router
from infrastructure.logging import get_module_logger
from infrastructure.services import get_settings
from server.lifespan import lifespan

logger = get_module_logger()


def create_app() -> FastAPI:
    """Build the FastAPI application with rate limiting, CORS and routes."""
    settings = get_settings()
    app = FastAPI(title="Event Reminders", lifespan=lifespan)
    setup_rate_limiter(app)

    allow_origins = (
        [settings.server.APP_URL]
        if settings.is_production
        else [
            "http://localhost:8000",
            "http://127.0.0.1:8000",
            settings.server.APP_URL,
        ]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


handler = create_app()
