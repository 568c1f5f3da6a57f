"""Server, security and storage infrastructure settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import InfrastructureSettings


class ServerSettings(InfrastructureSettings):
    """Server and application runtime configuration.

    Environment Variables:
        BACKEND_URL: Backend API base URL (default: http://127.0.0.1:8000)
        APP_URL: Public viewer-facing URL used in watch/register links
        CRON_SECRET: Bearer secret required by the trigger endpoints. When unset
            every trigger call is rejected.

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        app_url = settings.server.APP_URL
        ```
    """

    BACKEND_URL: str = Field(default="http://127.0.0.1:8000", alias="BACKEND_URL")
    APP_URL: str = Field(default="http://localhost:3002", alias="APP_URL")
    CRON_SECRET: str | None = Field(default=None, alias="CRON_SECRET")

    @field_validator("APP_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Links are built as ``{APP_URL}/watch/...``."""
        return v.rstrip("/")


class SecuritySettings(InfrastructureSettings):
    """Credential encryption configuration.

    Environment Variables:
        ENCRYPTION_KEY: urlsafe base64 Fernet key used to decrypt stored
            integration credentials. There is no default.
    """

    ENCRYPTION_KEY: str | None = Field(default=None, alias="ENCRYPTION_KEY")


class StorageSettings(InfrastructureSettings):
    """Obligation store configuration.

    Environment Variables:
        STORAGE_BACKEND: 'memory' or 'dynamodb' (default: memory)
        STORAGE_TABLE_PREFIX: Prefix applied to every DynamoDB table name

    Table names are derived from the prefix: ``{prefix}event-notifications``,
    ``{prefix}events``, ``{prefix}registrations``, ``{prefix}integration-contacts``,
    ``{prefix}integrations`` and ``{prefix}integration-usage-logs``.
    """

    backend: str = Field(
        default="memory",
        alias="STORAGE_BACKEND",
        description="Store backend: 'memory' or 'dynamodb'",
    )
    table_prefix: str = Field(
        default="reminders-",
        alias="STORAGE_TABLE_PREFIX",
        description="Prefix for DynamoDB table names",
    )

    def table_name(self, name: str) -> str:
        """Return the full table name for a logical table."""
        return f"{self.table_prefix}{name}"
