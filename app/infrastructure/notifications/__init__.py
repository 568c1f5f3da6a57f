"""Event reminder pipeline.

Schedules reminders for events and delivers them over email and SMS through
the default provider or an account's own integration.

Usage:
    from infrastructure.notifications import ReminderService

    service = ReminderService(settings, store=store)
    service.schedule_event("evt-1", ["1_day_before", "1_hour_before"])
    summary = service.run_due()
    logger.info("run_done", sent=summary.sent, failed=summary.failed)
"""

from infrastructure.notifications.models import (
    DeliveryOutcome,
    Event,
    Integration,
    IntegrationContact,
    IntegrationUsageLog,
    NotificationChannelType,
    NotificationObligation,
    ObligationStatus,
    Registration,
    RunSummary,
    TimingStage,
    ViewerProfile,
)
from infrastructure.notifications.orchestrator import (
    DeliveryOrchestrator,
    ReminderConfig,
)
from infrastructure.notifications.service import ReminderService
from infrastructure.notifications.store import (
    InMemoryNotificationStore,
    NotificationStore,
)

__all__ = [
    "DeliveryOutcome",
    "Event",
    "Integration",
    "IntegrationContact",
    "IntegrationUsageLog",
    "NotificationChannelType",
    "NotificationObligation",
    "ObligationStatus",
    "Registration",
    "RunSummary",
    "TimingStage",
    "ViewerProfile",
    "DeliveryOrchestrator",
    "ReminderConfig",
    "ReminderService",
    "InMemoryNotificationStore",
    "NotificationStore",
]
