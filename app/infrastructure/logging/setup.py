"""Structlog configuration for the reminder service.

Development renders to the console, production renders one JSON object per
line stamped with the app name and git sha. Sensitive keys are masked in both.

Usage:
    from infrastructure.logging import configure_logging, get_module_logger

    configure_logging()

    logger = get_module_logger()
    logger.info("obligation_claimed", obligation_id="evt-1:1_day_before")
"""

import inspect
import logging
import sys
from typing import TYPE_CHECKING, Any, List, Optional

import structlog
from structlog.stdlib import BoundLogger

from infrastructure.logging.formatters import add_app_info, mask_sensitive_data

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

APP_NAME = "event-reminders"

# Silences everything, CRITICAL included.
_SILENT = logging.CRITICAL + 1


def _is_test_environment() -> bool:
    """True if pytest is in sys.modules."""
    return "pytest" in sys.modules


def _shared_processors() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        mask_sensitive_data(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _apply(processors: List[Any], level: int, force: bool = False) -> BoundLogger:
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level, force=force)
    return structlog.stdlib.get_logger()


def configure_logging(
    settings: Optional["Settings"] = None,
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
) -> BoundLogger:
    """Configure structured logging.

    Under pytest all output is suppressed and the arguments are ignored.

    Args:
        settings: Settings instance. Loaded from the provider when omitted.
        log_level: Overrides settings.LOG_LEVEL.
        is_production: Overrides settings.is_production.

    Returns:
        Configured logger instance
    """
    if _is_test_environment():
        logging.root.setLevel(_SILENT)
        return _apply(
            [
                structlog.stdlib.add_log_level,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            _SILENT,
            force=True,
        )

    if settings is None:
        # Imported here: the provider module pulls in packages that log.
        from infrastructure.services.providers import get_settings

        settings = get_settings()

    production = settings.is_production if is_production is None else is_production
    processors = _shared_processors()
    if production:
        processors.insert(0, add_app_info(APP_NAME, settings.GIT_SHA))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    level_name = (log_level or settings.LOG_LEVEL).upper()
    return _apply(processors, getattr(logging, level_name, logging.INFO))


def get_module_logger() -> BoundLogger:
    """Logger bound to the calling module.

    Example:
        # In infrastructure/notifications/orchestrator.py
        logger = get_module_logger()
        # context: {"component": "orchestrator",
        #           "module_path": "infrastructure.notifications.orchestrator"}
    """
    logger = structlog.stdlib.get_logger()
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    module = inspect.getmodule(caller) if caller is not None else None
    if module is None:
        return logger.bind(component="unknown")

    return logger.bind(
        component=module.__name__.rsplit(".", 1)[-1],
        module_path=module.__name__,
    )
