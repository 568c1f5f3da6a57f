"""Event reminder schedule endpoints."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import NotificationChannelType
from infrastructure.notifications.schedule import is_too_late_to_schedule
from infrastructure.notifications.service import obligations_payload
from infrastructure.operations import OperationResult, OperationStatus
from infrastructure.security.cron import verify_cron_secret
from infrastructure.services.dependencies import ReminderServiceDep

logger = get_module_logger()
router = APIRouter(
    prefix="/events",
    tags=["Events"],
    dependencies=[Depends(verify_cron_secret)],
)


class ScheduleRequest(BaseModel):
    """Requested reminder schedule for an event.

    An empty ``intervals`` list clears the event's pending reminders.
    """

    intervals: List[str] = Field(default_factory=list)
    channel: NotificationChannelType = NotificationChannelType.EMAIL


def _raise_for_result(result: OperationResult) -> None:
    if result.is_success:
        return
    if result.status == OperationStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=result.message)
    if result.status == OperationStatus.TRANSIENT_ERROR:
        raise HTTPException(status_code=503, detail=result.message)
    raise HTTPException(status_code=500, detail=result.message)


@router.put("/{event_id}/notifications")
def replace_event_notifications(
    event_id: str, body: ScheduleRequest, service: ReminderServiceDep
):
    """Recompute the event's reminder schedule and replace pending reminders."""
    try:
        result = service.schedule_event(event_id, body.intervals, body.channel)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    _raise_for_result(result)

    warnings = []
    event = service.store.get_event(event_id)
    if event.is_success and is_too_late_to_schedule(event.data.scheduled_start):
        warnings.append("Event starts in less than 5 minutes")

    return {
        "event_id": event_id,
        "notifications": obligations_payload(result.data),
        "warnings": warnings,
    }


@router.get("/{event_id}/notifications")
def list_event_notifications(event_id: str, service: ReminderServiceDep):
    """List every reminder on record for the event."""
    result = service.list_schedule(event_id)
    _raise_for_result(result)
    return {"event_id": event_id, "notifications": obligations_payload(result.data)}
