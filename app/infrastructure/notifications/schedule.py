"""Reminder schedule calculation.

Turns an event start and a set of timing-stage names into the timestamps at
which reminders become due, and builds the obligations persisted for them.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    Event,
    NotificationChannelType,
    NotificationObligation,
    TimingStage,
    ensure_utc,
    utc_now,
)

logger = get_module_logger()

STAGE_OFFSETS: Dict[TimingStage, timedelta] = {
    TimingStage.TWO_WEEKS_BEFORE: timedelta(days=14),
    TimingStage.ONE_WEEK_BEFORE: timedelta(days=7),
    TimingStage.THREE_DAYS_BEFORE: timedelta(days=3),
    TimingStage.ONE_DAY_BEFORE: timedelta(hours=24),
    TimingStage.TWELVE_HOURS_BEFORE: timedelta(hours=12),
    TimingStage.ONE_HOUR_BEFORE: timedelta(hours=1),
    TimingStage.FIFTEEN_MINUTES_BEFORE: timedelta(minutes=15),
    TimingStage.AT_EVENT_START: timedelta(0),
}

MINIMUM_LEAD_TIME = timedelta(minutes=5)


def obligation_key(event_id: str, stage: TimingStage) -> str:
    return f"{event_id}:{TimingStage(stage).value}"


def parse_intervals(names: Iterable[str]) -> List[TimingStage]:
    """Validate interval names from an API payload.

    Args:
        names: Raw interval names.

    Returns:
        The parsed stages, duplicates removed, input order kept.

    Raises:
        ValueError: If any name is not part of the timing-stage vocabulary.
    """
    stages: List[TimingStage] = []
    unknown: List[str] = []
    for name in names:
        try:
            stage = TimingStage(name)
        except ValueError:
            unknown.append(str(name))
            continue
        if stage not in stages:
            stages.append(stage)

    if unknown:
        raise ValueError(f"Unknown notification intervals: {', '.join(unknown)}")
    return stages


def calculate_schedule(
    event_start: datetime,
    intervals: Sequence[TimingStage],
    now: Optional[datetime] = None,
) -> List[Tuple[TimingStage, datetime]]:
    """Compute one due timestamp per selected stage.

    "Before" stages are ``start - offset``, ``at_event_start`` is ``start`` and
    ``immediate`` is the computation instant. Timestamps already in the past
    are still returned; only a warning is logged.

    Args:
        event_start: Event start instant (naive values are UTC).
        intervals: Selected stages.
        now: Computation instant, defaults to the current time.

    Returns:
        ``(stage, timestamp)`` pairs sorted by timestamp ascending.
    """
    start = ensure_utc(event_start)
    computed_at = ensure_utc(now) if now else utc_now()

    schedule: List[Tuple[TimingStage, datetime]] = []
    for stage in dict.fromkeys(TimingStage(name) for name in intervals):
        if stage is TimingStage.IMMEDIATE:
            scheduled_time = computed_at
        else:
            scheduled_time = start - STAGE_OFFSETS[stage]

        if scheduled_time < computed_at and stage is not TimingStage.IMMEDIATE:
            logger.warning(
                "reminder_scheduled_in_past",
                timing_stage=stage.value,
                scheduled_time=scheduled_time.isoformat(),
            )
        schedule.append((stage, scheduled_time))

    schedule.sort(key=lambda pair: pair[1])
    return schedule


def is_too_late_to_schedule(
    event_start: datetime,
    now: Optional[datetime] = None,
    minimum_lead_time: timedelta = MINIMUM_LEAD_TIME,
) -> bool:
    """True if the event starts within ``minimum_lead_time`` of now."""
    current = ensure_utc(now) if now else utc_now()
    return ensure_utc(event_start) - current < minimum_lead_time


def build_obligations(
    event: Event,
    channel: NotificationChannelType,
    intervals: Sequence[TimingStage],
    now: Optional[datetime] = None,
) -> List[NotificationObligation]:
    """Create one scheduled obligation per stage for an event.

    Obligation ids are derived from (event, stage), so a store keyed on id
    also enforces one obligation per stage.
    """
    return [
        NotificationObligation(
            id=obligation_key(event.id, stage),
            event_id=event.id,
            channel=channel,
            timing_stage=stage,
            scheduled_time=scheduled_time,
        )
        for stage, scheduled_time in calculate_schedule(
            event.scheduled_start, intervals, now=now
        )
    ]
