"""Infrastructure configuration module - public API.

Centralized configuration for the reminder service using pydantic
BaseSettings with domain-based organization.

Exports:
    Settings: Main settings class
    ReminderSettings: Pipeline tuning settings (for tests and overrides)

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()
    secret = settings.server.CRON_SECRET
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features.reminders import ReminderSettings

__all__ = ["Settings", "ReminderSettings"]
