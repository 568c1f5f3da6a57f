from contextlib import asynccontextmanager
import threading
from typing import AsyncIterator, Optional, TYPE_CHECKING

from fastapi import FastAPI
from structlog.stdlib import BoundLogger

from infrastructure.logging.setup import configure_logging
from infrastructure.services import get_reminder_service, get_settings
from jobs import scheduled_tasks

if TYPE_CHECKING:
    from infrastructure.configuration import Settings


def _list_configs(settings: "Settings", logger: BoundLogger) -> None:
    config_settings: dict[str, list[object]] = {"settings": []}

    for key, value in settings.model_dump().items():
        if isinstance(value, dict):
            config_settings[key] = list(value.keys())
        else:
            config_settings["settings"].append({key: value})

    logger.info("configuration_initialized", base_settings=config_settings["settings"])
    for key, value in config_settings.items():
        if key != "settings":
            logger.info("configuration_loaded", config_setting=key, keys=value)


def _start_scheduled_tasks(
    settings: "Settings", logger: BoundLogger
) -> Optional[threading.Event]:
    if not settings.reminders.scheduler_enabled:
        logger.info("scheduled_tasks_skipped", reason="scheduler_disabled")
        return None

    scheduled_tasks.init(
        get_reminder_service(),
        interval_seconds=settings.reminders.scheduler_interval_seconds,
    )
    stop_event = scheduled_tasks.run_continuously()
    logger.info(
        "scheduled_tasks_started",
        interval_seconds=settings.reminders.scheduler_interval_seconds,
    )
    return stop_event


def _stop_scheduled_tasks(stop_event: Optional[threading.Event]) -> None:
    if stop_event is None:
        return
    scheduled_tasks.stop(stop_event)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger = configure_logging(settings=settings)

    app.state.settings = settings
    app.state.logger = logger

    logger.info("application_startup")
    _list_configs(settings, logger)

    app.state.scheduled_stop_event = _start_scheduled_tasks(settings, logger)

    yield

    logger.info("application_shutdown")
    _stop_scheduled_tasks(app.state.scheduled_stop_event)
