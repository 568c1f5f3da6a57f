"""Run-scoped context binding for structured logging.

Every trigger run binds a correlation id (and optionally the trigger source)
so all log entries emitted while processing its obligations can be grouped.

Usage:
    from infrastructure.logging import bind_run_context

    with bind_run_context(trigger="cron"):
        logger.info("run_started")
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_run_context(
    correlation_id: Optional[str] = None,
    trigger: Optional[str] = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """Bind run-scoped context to all logs within the block.

    Args:
        correlation_id: Run identifier. Auto-generated if not provided.
        trigger: What started the run (cron, scheduler, manual).
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        The correlation id bound for this run.
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}
    if trigger is not None:
        context["trigger"] = trigger
    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield context["correlation_id"]
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Return the correlation id bound in the current context, if any."""
    return structlog.contextvars.get_contextvars().get("correlation_id")


def clear_run_context() -> None:
    """Clear all run-scoped context."""
    structlog.contextvars.clear_contextvars()
