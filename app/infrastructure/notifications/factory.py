"""Factory for creating notification stores based on configuration."""

import structlog

from infrastructure.configuration import Settings
from infrastructure.notifications.dynamodb_store import DynamoDBNotificationStore
from infrastructure.notifications.store import (
    InMemoryNotificationStore,
    NotificationStore,
)

logger = structlog.get_logger()


def create_notification_store(
    settings: Settings, backend: str | None = None
) -> NotificationStore:
    """Create the notification store for the configured backend.

    Args:
        settings: Application settings
        backend: Optional override (memory, dynamodb). If None, uses
            settings.storage.backend

    Returns:
        NotificationStore implementation

    Raises:
        ValueError: If the backend is unknown

    Examples:
        >>> store = create_notification_store(settings)
        >>> store = create_notification_store(settings, backend="memory")
    """
    backend = backend or settings.storage.backend

    if backend == "memory":
        logger.info("creating_in_memory_notification_store")
        return InMemoryNotificationStore()

    if backend == "dynamodb":
        logger.info(
            "creating_dynamodb_notification_store",
            table_prefix=settings.storage.table_prefix,
        )
        return DynamoDBNotificationStore(settings.storage)

    raise ValueError(
        f"Unknown storage backend: {backend}. Supported: memory, dynamodb"
    )
