"""Storage for obligations, events, recipients and integrations.

``NotificationStore`` lists the operations the pipeline needs from
persistence. The claim operation is the pipeline's only concurrency guard:
implementations must flip ``scheduled`` to ``sending`` in a single atomic
step so overlapping trigger runs can never both win the same obligation.
"""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    Event,
    Integration,
    IntegrationContact,
    IntegrationUsageLog,
    NotificationObligation,
    ObligationStatus,
    Registration,
    TimingStage,
    ensure_utc,
    utc_now,
)
from infrastructure.operations import OperationResult

logger = get_module_logger()


class NotificationStore(Protocol):
    """Storage interface used by the reminder pipeline.

    Methods returning ``OperationResult`` never raise for storage failures.

    Methods:
        save_event / get_event: Event records
        save_registration / list_registrations: Registrations per event
        save_contact / list_contacts: Integration contacts
        save_integration / get_active_integration: Integrations
        save_obligations: Insert obligations, one per (event, stage)
        replace_schedule: Swap an event's pending obligations for new ones
        list_obligations: All obligations of an event
        fetch_due: Scheduled obligations due at or before a cutoff
        claim: Atomic scheduled -> sending transition
        complete: Terminal transition from sending
        record_integration_usage: Append a usage log and bump counters
        increment_event_notifications_sent: Bump an event's sent counter
    """

    def save_event(self, event: Event) -> OperationResult: ...

    def get_event(self, event_id: str) -> OperationResult: ...

    def save_registration(self, registration: Registration) -> OperationResult: ...

    def list_registrations(self, event_id: str) -> OperationResult: ...

    def save_contact(self, contact: IntegrationContact) -> OperationResult: ...

    def list_contacts(
        self, integration_id: str, contact_ids: Sequence[str]
    ) -> OperationResult: ...

    def save_integration(self, integration: Integration) -> OperationResult: ...

    def get_active_integration(self, integration_id: str) -> OperationResult: ...

    def save_obligations(
        self, obligations: Sequence[NotificationObligation]
    ) -> OperationResult: ...

    def replace_schedule(
        self, event_id: str, obligations: Sequence[NotificationObligation]
    ) -> OperationResult: ...

    def list_obligations(self, event_id: str) -> OperationResult: ...

    def fetch_due(self, cutoff: datetime) -> OperationResult: ...

    def claim(self, obligation_id: str, now: Optional[datetime] = None) -> bool: ...

    def complete(
        self,
        obligation_id: str,
        status: ObligationStatus,
        recipients_count: int,
        sent_count: int,
        failed_count: int,
        error_details: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult: ...

    def record_integration_usage(
        self, log: IntegrationUsageLog, now: Optional[datetime] = None
    ) -> OperationResult: ...

    def increment_event_notifications_sent(
        self, event_id: str, count: int
    ) -> OperationResult: ...


class InMemoryNotificationStore:
    """Thread-safe in-memory store for development and tests.

    A single lock guards every operation, which makes ``claim`` a
    compare-and-set on the obligation's status. Records are copied on the way
    in and out so callers cannot mutate stored state.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._events: Dict[str, Event] = {}
        self._registrations: Dict[str, Registration] = {}
        self._contacts: Dict[str, IntegrationContact] = {}
        self._integrations: Dict[str, Integration] = {}
        self._obligations: Dict[str, NotificationObligation] = {}
        self._usage_logs: List[IntegrationUsageLog] = []

    # Events and recipients

    def save_event(self, event: Event) -> OperationResult:
        with self._lock:
            self._events[event.id] = event.model_copy(deep=True)
        return OperationResult.success(data=event.id)

    def get_event(self, event_id: str) -> OperationResult:
        with self._lock:
            event = self._events.get(event_id)
        if event is None:
            return OperationResult.not_found(f"Event {event_id} not found")
        return OperationResult.success(data=event.model_copy(deep=True))

    def save_registration(self, registration: Registration) -> OperationResult:
        with self._lock:
            self._registrations[registration.id] = registration.model_copy(deep=True)
        return OperationResult.success(data=registration.id)

    def list_registrations(self, event_id: str) -> OperationResult:
        with self._lock:
            registrations = [
                r.model_copy(deep=True)
                for r in self._registrations.values()
                if r.event_id == event_id
            ]
        return OperationResult.success(data=registrations)

    def save_contact(self, contact: IntegrationContact) -> OperationResult:
        with self._lock:
            self._contacts[contact.id] = contact.model_copy(deep=True)
        return OperationResult.success(data=contact.id)

    def list_contacts(
        self, integration_id: str, contact_ids: Sequence[str]
    ) -> OperationResult:
        with self._lock:
            contacts = [
                self._contacts[cid].model_copy(deep=True)
                for cid in dict.fromkeys(contact_ids)
                if cid in self._contacts
                and self._contacts[cid].integration_id == integration_id
            ]
        return OperationResult.success(data=contacts)

    def save_integration(self, integration: Integration) -> OperationResult:
        with self._lock:
            self._integrations[integration.id] = integration.model_copy(deep=True)
        return OperationResult.success(data=integration.id)

    def get_active_integration(self, integration_id: str) -> OperationResult:
        with self._lock:
            integration = self._integrations.get(integration_id)
        if integration is None or not integration.is_active:
            return OperationResult.not_found(
                f"Active integration {integration_id} not found"
            )
        return OperationResult.success(data=integration.model_copy(deep=True))

    # Obligations

    def _stage_index(self) -> Dict[Tuple[str, TimingStage], str]:
        return {(o.event_id, o.timing_stage): o.id for o in self._obligations.values()}

    def save_obligations(
        self, obligations: Sequence[NotificationObligation]
    ) -> OperationResult:
        with self._lock:
            index = self._stage_index()
            for obligation in obligations:
                key = (obligation.event_id, obligation.timing_stage)
                if key in index or obligation.id in self._obligations:
                    return OperationResult.conflict(
                        f"Obligation for {key[0]}/{key[1].value} already exists",
                        error_code="DUPLICATE_OBLIGATION",
                    )
            for obligation in obligations:
                self._obligations[obligation.id] = obligation.model_copy(deep=True)
        return OperationResult.success(data=[o.id for o in obligations])

    def replace_schedule(
        self, event_id: str, obligations: Sequence[NotificationObligation]
    ) -> OperationResult:
        """Drop the event's still-scheduled rows and insert the new ones.

        Stages that already left ``scheduled`` keep their row; a new obligation
        for such a stage is skipped so there is still one row per stage.
        """
        with self._lock:
            for obligation_id, existing in list(self._obligations.items()):
                if (
                    existing.event_id == event_id
                    and existing.status == ObligationStatus.SCHEDULED
                ):
                    del self._obligations[obligation_id]

            index = self._stage_index()
            saved = []
            for obligation in obligations:
                if (event_id, obligation.timing_stage) in index:
                    continue
                self._obligations[obligation.id] = obligation.model_copy(deep=True)
                saved.append(obligation.id)
        return OperationResult.success(data=saved)

    def list_obligations(self, event_id: str) -> OperationResult:
        with self._lock:
            obligations = sorted(
                (
                    o.model_copy(deep=True)
                    for o in self._obligations.values()
                    if o.event_id == event_id
                ),
                key=lambda o: o.scheduled_time,
            )
        return OperationResult.success(data=obligations)

    def fetch_due(self, cutoff: datetime) -> OperationResult:
        cutoff = ensure_utc(cutoff)
        with self._lock:
            due = [
                o.model_copy(deep=True)
                for o in self._obligations.values()
                if o.status == ObligationStatus.SCHEDULED and o.scheduled_time <= cutoff
            ]
        due.sort(key=lambda o: o.scheduled_time)
        return OperationResult.success(data=due)

    def claim(self, obligation_id: str, now: Optional[datetime] = None) -> bool:
        with self._lock:
            obligation = self._obligations.get(obligation_id)
            if obligation is None or obligation.status != ObligationStatus.SCHEDULED:
                logger.debug("obligation_claim_lost", obligation_id=obligation_id)
                return False
            obligation.status = ObligationStatus.SENDING
            obligation.updated_at = ensure_utc(now) if now else utc_now()
        return True

    def complete(
        self,
        obligation_id: str,
        status: ObligationStatus,
        recipients_count: int,
        sent_count: int,
        failed_count: int,
        error_details: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        if not status.is_terminal:
            return OperationResult.permanent_error(
                f"Cannot complete obligation with status {status.value}",
                error_code="INVALID_STATUS",
            )
        with self._lock:
            obligation = self._obligations.get(obligation_id)
            if obligation is None:
                return OperationResult.not_found(f"Obligation {obligation_id} not found")
            if obligation.status != ObligationStatus.SENDING:
                return OperationResult.conflict(
                    f"Obligation {obligation_id} is {obligation.status.value}, not sending"
                )
            obligation.status = status
            obligation.recipients_count = recipients_count
            obligation.sent_count = sent_count
            obligation.failed_count = failed_count
            obligation.error_details = error_details
            obligation.updated_at = ensure_utc(now) if now else utc_now()
        return OperationResult.success(data=obligation_id)

    # Outcome counters

    def record_integration_usage(
        self, log: IntegrationUsageLog, now: Optional[datetime] = None
    ) -> OperationResult:
        with self._lock:
            integration = self._integrations.get(log.integration_id)
            if integration is None:
                return OperationResult.not_found(
                    f"Integration {log.integration_id} not found"
                )
            integration.total_sent += log.success_count
            integration.last_used_at = ensure_utc(now) if now else utc_now()
            self._usage_logs.append(log.model_copy(deep=True))
        return OperationResult.success(data=log.id)

    def increment_event_notifications_sent(
        self, event_id: str, count: int
    ) -> OperationResult:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return OperationResult.not_found(f"Event {event_id} not found")
            event.notifications_sent += count
        return OperationResult.success(data=event.notifications_sent)

    def usage_logs(self, integration_id: Optional[str] = None) -> List[IntegrationUsageLog]:
        """Usage logs, optionally for one integration (inspection helper)."""
        with self._lock:
            return [
                log.model_copy(deep=True)
                for log in self._usage_logs
                if integration_id is None or log.integration_id == integration_id
            ]

    def get_obligation(self, obligation_id: str) -> Optional[NotificationObligation]:
        """Return a copy of one obligation (inspection helper)."""
        with self._lock:
            obligation = self._obligations.get(obligation_id)
            return obligation.model_copy(deep=True) if obligation else None

    def get_integration(self, integration_id: str) -> Optional[Integration]:
        """Return a copy of one integration regardless of status (inspection helper)."""
        with self._lock:
            integration = self._integrations.get(integration_id)
            return integration.model_copy(deep=True) if integration else None
