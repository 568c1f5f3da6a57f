"""Feature settings __init__ - exports all feature settings."""

from infrastructure.configuration.features.reminders import ReminderSettings

__all__ = [
    "ReminderSettings",
]
