"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.server import (
    ServerSettings,
    SecuritySettings,
    StorageSettings,
)

__all__ = [
    "ServerSettings",
    "SecuritySettings",
    "StorageSettings",
]
