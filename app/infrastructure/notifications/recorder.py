"""Outcome recording for processed obligations."""

from datetime import datetime
from typing import Any, Dict, Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    DeliveryOutcome,
    Integration,
    IntegrationUsageLog,
    NotificationObligation,
    ObligationStatus,
)
from infrastructure.notifications.store import NotificationStore
from infrastructure.operations import OperationResult

logger = get_module_logger()


def error_details(error: Any, error_code: Optional[str] = None) -> Dict[str, Any]:
    """Structured ``error_details`` payload for an obligation."""
    if error_code is None:
        if isinstance(error, str):
            error_code = "PROCESSING_ERROR"
        else:
            error_code = getattr(error, "error_code", None) or type(error).__name__
    return {"error": str(error), "error_code": error_code}


def final_status(
    recipients_count: int, sent: int, failed: int, has_error: bool = False
) -> ObligationStatus:
    """Terminal status for an obligation.

    Any delivery, or nobody to deliver to, counts as sent. Otherwise
    failures or an error mean failed. Recipients who were all filtered out
    by consent leave nothing failed, so that is sent too.
    """
    if sent > 0 or recipients_count == 0:
        return ObligationStatus.SENT
    if failed > 0 or has_error:
        return ObligationStatus.FAILED
    return ObligationStatus.SENT


class OutcomeRecorder:
    """Writes terminal obligation state, usage logs and event counters."""

    def __init__(self, store: NotificationStore):
        self._store = store

    def complete(
        self,
        obligation: NotificationObligation,
        recipients_count: int,
        sent: int,
        failed: int,
        error: Any = None,
        error_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        status = final_status(recipients_count, sent, failed, has_error=error is not None)
        details = error_details(error, error_code) if error is not None else None
        result = self._store.complete(
            obligation.id,
            status,
            recipients_count=recipients_count,
            sent_count=sent,
            failed_count=failed,
            error_details=details,
            now=now,
        )
        if result.is_success:
            logger.info(
                "obligation_completed",
                obligation_id=obligation.id,
                event_id=obligation.event_id,
                status=status.value,
                recipients_count=recipients_count,
                sent_count=sent,
                failed_count=failed,
            )
        else:
            logger.error(
                "obligation_completion_failed",
                obligation_id=obligation.id,
                error=result.message,
                error_code=result.error_code,
            )
        return result

    def fail(
        self,
        obligation: NotificationObligation,
        error: Any,
        error_code: Optional[str] = None,
        recipients_count: int = 0,
        sent: int = 0,
        failed: int = 0,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """Force the obligation to ``failed`` with structured error details."""
        details = error_details(error, error_code)
        result = self._store.complete(
            obligation.id,
            ObligationStatus.FAILED,
            recipients_count=recipients_count,
            sent_count=sent,
            failed_count=failed,
            error_details=details,
            now=now,
        )
        logger.error(
            "obligation_failed",
            obligation_id=obligation.id,
            event_id=obligation.event_id,
            error=details["error"],
            error_code=details["error_code"],
            recorded=result.is_success,
        )
        return result

    def record_usage(
        self,
        integration: Integration,
        operation_type: str,
        outcome: DeliveryOutcome,
        recipients_count: int,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        log = IntegrationUsageLog(
            integration_id=integration.id,
            operation_type=operation_type,
            recipients_count=recipients_count,
            success_count=outcome.success_count,
            failed_count=outcome.failure_count,
            estimated_cost=outcome.estimated_cost,
        )
        if now is not None:
            log.created_at = now
        result = self._store.record_integration_usage(log, now=now)
        if not result.is_success:
            logger.warning(
                "integration_usage_not_recorded",
                integration_id=integration.id,
                operation_type=operation_type,
                error=result.message,
            )
        return result

    def increment_event_sent(self, event_id: str, count: int) -> OperationResult:
        if count <= 0:
            return OperationResult.success(message="nothing to count")
        result = self._store.increment_event_notifications_sent(event_id, count)
        if not result.is_success:
            logger.warning(
                "event_sent_counter_not_updated",
                event_id=event_id,
                count=count,
                error=result.message,
            )
        return result
