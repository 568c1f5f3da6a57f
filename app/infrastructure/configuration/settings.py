"""Reminder service configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from infrastructure.configuration.integrations import AwsSettings, NotifySettings
from infrastructure.configuration.features import ReminderSettings
from infrastructure.configuration.infrastructure import (
    SecuritySettings,
    ServerSettings,
    StorageSettings,
)


class Settings(BaseSettings):
    """Reminder service configuration settings - main aggregator.

    Settings are organized by concern:

    - **Integrations**: GC Notify (default provider), AWS
    - **Features**: reminder pipeline tuning
    - **Infrastructure**: server secrets, credential encryption, storage

    Environment Variables:
        PREFIX: Environment prefix; empty means production
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        lookahead = settings.reminders.lookahead_seconds
        backend = settings.storage.backend
        if settings.is_production:
            ...
        ```
    """

    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    aws: AwsSettings
    notify: NotifySettings

    # Feature settings
    reminders: ReminderSettings

    # Infrastructure settings
    server: ServerSettings
    security: SecuritySettings
    storage: StorageSettings

    @property
    def is_production(self) -> bool:
        """True if PREFIX is empty (production)."""
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings, instantiating any sub-settings not passed in.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            "aws": AwsSettings,
            "notify": NotifySettings,
            "reminders": ReminderSettings,
            "server": ServerSettings,
            "security": SecuritySettings,
            "storage": StorageSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
