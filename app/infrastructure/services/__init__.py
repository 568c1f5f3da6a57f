"""
Dependency injection services.

Provider functions live here; the FastAPI ``Annotated`` aliases are in
``infrastructure.services.dependencies`` (imported by the API layer only, as
they pull in the full pipeline).
"""

from infrastructure.services.providers import (
    get_settings,
    get_notification_store,
    get_reminder_service,
)

__all__ = [
    "get_settings",
    "get_notification_store",
    "get_reminder_service",
]
