"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
Service classes are imported inside the providers: the modules they live in
depend on ``get_settings`` from here.
"""

from functools import lru_cache
from typing import TYPE_CHECKING

from infrastructure.configuration import Settings

if TYPE_CHECKING:
    from infrastructure.notifications.service import ReminderService
    from infrastructure.notifications.store import NotificationStore


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    Infrastructure packages call this directly:
        from infrastructure.services.providers import get_settings

    Application code should use the DI type alias for testability:
        from infrastructure.services.dependencies import SettingsDep

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_notification_store() -> "NotificationStore":
    """
    Get the application-scoped obligation store for the configured backend.

    Returns:
        NotificationStore: In-memory or DynamoDB store per settings.storage.backend.
    """
    from infrastructure.notifications.factory import create_notification_store

    return create_notification_store(get_settings())


@lru_cache
def get_reminder_service() -> "ReminderService":
    """
    Get the application-scoped reminder service.

    Usage:
        @router.post("/cron/send-notifications")
        def trigger(service: ReminderServiceDep):
            return service.run_due().to_dict()
    """
    from infrastructure.notifications.service import ReminderService

    return ReminderService(settings=get_settings(), store=get_notification_store())
