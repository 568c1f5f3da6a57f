"""Shared base classes for settings modules."""

from pydantic_settings import BaseSettings, SettingsConfigDict

_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=".env",
    case_sensitive=True,
    extra="ignore",
    populate_by_name=True,
)


class IntegrationSettings(BaseSettings):
    """Base class for external provider settings (GC Notify, AWS).

    Values are read from the environment or a local ``.env`` file.
    """

    model_config = _SETTINGS_CONFIG


class FeatureSettings(BaseSettings):
    """Base class for feature settings such as the reminder pipeline tuning."""

    model_config = _SETTINGS_CONFIG


class InfrastructureSettings(BaseSettings):
    """Base class for infrastructure-level settings.

    Infrastructure settings control server secrets, credential encryption and
    the storage backend.
    """

    model_config = _SETTINGS_CONFIG
