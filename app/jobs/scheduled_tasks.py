import threading
import time
from typing import TYPE_CHECKING

import schedule

from infrastructure.logging import get_module_logger

if TYPE_CHECKING:
    from infrastructure.notifications.service import ReminderService

logger = get_module_logger()

HEARTBEAT_MINUTES = 5


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "safe_run_error",
                error=str(e),
                function=job.__name__,
                module=job.__module__,
            )

    wrapper.__name__ = job.__name__
    return wrapper


def init(service: "ReminderService", interval_seconds: int = 60):
    """Register the reminder run and the heartbeat with the scheduler."""
    logger.info("scheduled_tasks_initialized", interval_seconds=interval_seconds)

    schedule.every(interval_seconds).seconds.do(
        safe_run(send_due_notifications), service=service
    )
    schedule.every(HEARTBEAT_MINUTES).minutes.do(safe_run(scheduler_heartbeat))


def scheduler_heartbeat():
    logger.info("scheduler_heartbeat", time=time.ctime())


def send_due_notifications(service: "ReminderService"):
    summary = service.run_due(trigger="scheduler")
    logger.info(
        "scheduled_reminder_run_completed",
        processed=summary.processed,
        sent=summary.sent,
        failed=summary.failed,
        recipients_sent=summary.recipients_sent,
        recipients_failed=summary.recipients_failed,
        error_count=len(summary.errors),
    )


def run_continuously(interval=1):
    """Run pending jobs every ``interval`` seconds in a daemon thread.

    Missed runs are not replayed: a job due several times while the thread
    slept runs once.

    Returns:
        threading.Event that stops the thread when set
    """
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        def run(self):
            while not cease_continuous_run.is_set():
                schedule.run_pending()
                cease_continuous_run.wait(interval)

    continuous_thread = ScheduleThread(daemon=True, name="reminder-scheduler")
    continuous_thread.start()
    return cease_continuous_run


def stop(cease_continuous_run: threading.Event):
    """Stop the scheduler thread and drop every registered job."""
    cease_continuous_run.set()
    schedule.clear()
