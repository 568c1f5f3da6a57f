"""Structured logging infrastructure.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_module_logger(): Get a logger for the calling module
    - bind_run_context(): Context manager for run-scoped logging
    - get_correlation_id(): Current correlation id
    - clear_run_context(): Clear all run context

Example:
    from infrastructure.logging import configure_logging, get_module_logger

    configure_logging()
    logger = get_module_logger()
    logger.info("module_initialized")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_module_logger,
)

from infrastructure.logging.context import (
    bind_run_context,
    get_correlation_id,
    clear_run_context,
)

from infrastructure.logging.formatters import (
    add_app_info,
    mask_sensitive_data,
    SENSITIVE_PATTERNS,
)

__all__ = [
    "configure_logging",
    "get_module_logger",
    "bind_run_context",
    "get_correlation_id",
    "clear_run_context",
    "add_app_info",
    "mask_sensitive_data",
    "SENSITIVE_PATTERNS",
]
