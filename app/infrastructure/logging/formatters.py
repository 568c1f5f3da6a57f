"""Structlog processors used by ``configure_logging``."""

from typing import Any


def add_app_info(app_name: str, app_version: str = "unknown"):
    """Create a processor that stamps every entry with the app name and version."""

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict["app_name"] = app_name
        event_dict["app_version"] = app_version
        return event_dict

    return processor


# Keys containing any of these fragments are masked
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
        "encrypted",
        "private_key",
        "jwt",
        "bearer",
    }
)


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_patterns: frozenset[str] | None = None,
):
    """Create a processor that masks values of sensitive keys.

    Matching is case-insensitive on the key name. ``None`` values are left
    alone so "missing credential" entries stay readable.

    Args:
        mask_value: Replacement string.
        additional_patterns: Extra key fragments to treat as sensitive.

    Returns:
        A structlog processor function.
    """
    patterns = SENSITIVE_PATTERNS
    if additional_patterns:
        patterns = patterns | additional_patterns

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        masked_dict = {}
        for key, value in event_dict.items():
            key_lower = key.lower()
            if value is not None and any(pattern in key_lower for pattern in patterns):
                masked_dict[key] = mask_value
            else:
                masked_dict[key] = value
        return masked_dict

    return processor
