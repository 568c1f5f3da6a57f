import pytest

from infrastructure.services.providers import (
    get_notification_store,
    get_reminder_service,
    get_settings,
)


@pytest.fixture(autouse=True)
def clear_provider_caches():
    """Every test starts with fresh application-scoped providers."""
    get_settings.cache_clear()
    get_notification_store.cache_clear()
    get_reminder_service.cache_clear()
    yield
    get_settings.cache_clear()
    get_notification_store.cache_clear()
    get_reminder_service.cache_clear()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep host environment variables out of settings under test."""
    for name in (
        "CRON_SECRET",
        "ENCRYPTION_KEY",
        "STORAGE_BACKEND",
        "APP_URL",
        "PREFIX",
        "REMINDERS_SCHEDULER_ENABLED",
        "GIT_SHA",
    ):
        monkeypatch.delenv(name, raising=False)
