from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI

from api.dependencies.rate_limits import limiter, setup_rate_limiter
from api.router import api_router
from infrastructure.configuration import Settings
from infrastructure.configuration.infrastructure import ServerSettings
from infrastructure.notifications.service import ReminderService
from infrastructure.services.providers import get_reminder_service, get_settings

CRON_SECRET = "s3cret"


@pytest.fixture(autouse=True)
def reset_limiter():
    """Rate limit counters are process-wide; start every test from zero."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def api_settings():
    return Settings(GIT_SHA="abc123", server=ServerSettings(CRON_SECRET=CRON_SECRET))


@pytest.fixture
def reminder_service():
    return MagicMock(spec=ReminderService)


@pytest.fixture
def api_app(api_settings, reminder_service):
    """Application with routes and limiter but no lifespan."""
    app = FastAPI()
    setup_rate_limiter(app)
    app.include_router(api_router)
    app.dependency_overrides[get_settings] = lambda: api_settings
    app.dependency_overrides[get_reminder_service] = lambda: reminder_service
    return app


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}
