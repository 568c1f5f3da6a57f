"""
Type aliases for FastAPI dependency injection.

Provides annotated type hints for common infrastructure dependencies.
"""

from typing import Annotated

from fastapi import Depends

from infrastructure.configuration import Settings
from infrastructure.notifications.service import ReminderService
from infrastructure.services.providers import get_reminder_service, get_settings

# Settings dependency
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Reminder pipeline facade (scheduling + trigger runs)
ReminderServiceDep = Annotated[ReminderService, Depends(get_reminder_service)]

__all__ = [
    "SettingsDep",
    "ReminderServiceDep",
]
