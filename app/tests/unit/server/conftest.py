"""Fixtures for server module unit tests."""

from unittest.mock import MagicMock

import pytest

from infrastructure.configuration import ReminderSettings, Settings


@pytest.fixture
def scheduler_settings():
    """Settings with the in-process scheduler switched on."""
    return Settings(
        reminders=ReminderSettings(scheduler_enabled=True, scheduler_interval_seconds=15)
    )


@pytest.fixture
def mock_logger():
    return MagicMock()
