"""Reminder service for dependency injection.

Class-based facade over scheduling and trigger runs so routes and jobs depend
on one object that is easy to replace with a mock.
"""

from datetime import datetime
from typing import List, Optional, Sequence, TYPE_CHECKING

from infrastructure.logging import get_module_logger
from infrastructure.notifications.adapters import DefaultProvider, DeliveryAdapter
from infrastructure.notifications.models import (
    NotificationChannelType,
    NotificationObligation,
    RunSummary,
    ensure_utc,
    utc_now,
)
from infrastructure.notifications.orchestrator import (
    DeliveryOrchestrator,
    ReminderConfig,
)
from infrastructure.notifications.schedule import build_obligations, parse_intervals
from infrastructure.notifications.store import NotificationStore
from infrastructure.operations import OperationResult
from infrastructure.security.credentials import CredentialCipher

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = get_module_logger()


class ReminderService:
    """Schedules reminders for events and runs due deliveries.

    This is a thin facade: the orchestrator does the delivery work and the
    store owns persistence.

    Usage:
        # Via dependency injection
        from infrastructure.services.dependencies import ReminderServiceDep

        @router.post("/cron/send-notifications")
        def trigger(service: ReminderServiceDep):
            return service.run_due().to_dict()

        # Direct instantiation
        service = ReminderService(settings, store=InMemoryNotificationStore())
        service.run_due()
    """

    def __init__(
        self,
        settings: "Settings",
        store: NotificationStore,
        default_adapter: Optional[DeliveryAdapter] = None,
        orchestrator: Optional[DeliveryOrchestrator] = None,
    ):
        """Initialize the reminder service.

        Args:
            settings: Settings instance (required, passed from provider)
            store: Notification store
            default_adapter: Optional default provider override
            orchestrator: Optional orchestrator override (for testing)
        """
        self._settings = settings
        self._store = store

        if orchestrator is None:
            cipher = None
            if settings.security.ENCRYPTION_KEY:
                cipher = CredentialCipher(settings.security.ENCRYPTION_KEY)
            else:
                logger.warning("encryption_key_not_configured")

            timeout = settings.reminders.adapter_timeout_seconds
            orchestrator = DeliveryOrchestrator(
                store=store,
                config=ReminderConfig.from_settings(settings),
                default_adapter=default_adapter
                or DefaultProvider(settings.notify, timeout=timeout),
                cipher=cipher,
            )
        self._orchestrator = orchestrator

    @property
    def store(self) -> NotificationStore:
        return self._store

    def schedule_event(
        self,
        event_id: str,
        intervals: Sequence[str],
        channel: NotificationChannelType = NotificationChannelType.EMAIL,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """Recompute an event's schedule and replace its pending obligations.

        Args:
            event_id: Event to schedule
            intervals: Timing stage names
            channel: Delivery channel for every obligation
            now: Computation instant

        Returns:
            OperationResult with the list of obligations now on record for the
            event, or NOT_FOUND if the event does not exist

        Raises:
            ValueError: If any interval name is unknown
        """
        stages = parse_intervals(intervals)
        current = ensure_utc(now) if now else utc_now()

        event_result = self._store.get_event(event_id)
        if not event_result.is_success:
            return event_result

        obligations = build_obligations(event_result.data, channel, stages, now=current)
        replaced = self._store.replace_schedule(event_id, obligations)
        if not replaced.is_success:
            logger.error(
                "event_schedule_replace_failed",
                event_id=event_id,
                error=replaced.message,
                error_code=replaced.error_code,
            )
            return replaced

        logger.info(
            "event_schedule_replaced",
            event_id=event_id,
            channel=channel.value,
            stages=[s.value for s in stages],
            created=len(replaced.data or []),
        )
        return self._store.list_obligations(event_id)

    def list_schedule(self, event_id: str) -> OperationResult:
        return self._store.list_obligations(event_id)

    def run_due(self, now: Optional[datetime] = None, trigger: str = "cron") -> RunSummary:
        """Process every due obligation once."""
        return self._orchestrator.run(now=now, trigger=trigger)


def obligations_payload(obligations: List[NotificationObligation]) -> List[dict]:
    """JSON-ready view of obligations for API responses."""
    return [o.model_dump(mode="json") for o in obligations]
