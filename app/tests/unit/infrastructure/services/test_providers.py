"""
Unit tests for dependency injection providers.

Tests cover:
- get_settings() caching behavior
- get_notification_store() and get_reminder_service() singletons
- Dependency override pattern for testing
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from infrastructure.configuration import Settings
from infrastructure.notifications.service import ReminderService
from infrastructure.notifications.store import InMemoryNotificationStore
from infrastructure.services.dependencies import ReminderServiceDep, SettingsDep
from infrastructure.services.providers import (
    get_notification_store,
    get_reminder_service,
    get_settings,
)


@pytest.mark.unit
class TestGetSettings:
    """Tests for get_settings() provider function."""

    def test_returns_cached_instance(self):
        assert isinstance(get_settings(), Settings)
        assert get_settings() is get_settings()

    def test_cache_can_be_cleared(self):
        instance1 = get_settings()
        get_settings.cache_clear()

        assert get_settings() is not instance1


@pytest.mark.unit
class TestPipelineProviders:
    def test_store_defaults_to_memory(self):
        store = get_notification_store()

        assert isinstance(store, InMemoryNotificationStore)
        assert get_notification_store() is store

    def test_reminder_service_shares_store(self):
        service = get_reminder_service()

        assert isinstance(service, ReminderService)
        assert service.store is get_notification_store()
        assert get_reminder_service() is service


@pytest.mark.unit
class TestDependencyOverridePattern:
    """Tests for FastAPI dependency override pattern."""

    def test_settings_dep_override(self):
        app = FastAPI()

        @app.get("/config")
        def get_config(settings: SettingsDep) -> dict:
            return {"git_sha": settings.GIT_SHA}

        app.dependency_overrides[get_settings] = lambda: Settings(GIT_SHA="abc123")

        with TestClient(app) as client:
            response = client.get("/config")

        assert response.json() == {"git_sha": "abc123"}

    def test_reminder_service_dep_override(self):
        app = FastAPI()
        mock_service = MagicMock(spec=ReminderService)
        mock_service.list_schedule.return_value.data = []

        @app.get("/schedule")
        def schedule(service: ReminderServiceDep) -> dict:
            return {"count": len(service.list_schedule("evt-1").data)}

        app.dependency_overrides[get_reminder_service] = lambda: mock_service

        with TestClient(app) as client:
            response = client.get("/schedule")

        assert response.json() == {"count": 0}
        mock_service.list_schedule.assert_called_once_with("evt-1")
