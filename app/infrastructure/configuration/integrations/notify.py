"""GC Notify integration settings (default delivery provider)."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class NotifySettings(IntegrationSettings):
    """GC Notify API configuration.

    The default provider sends every reminder through two generic GC Notify
    templates whose personalisation fields are ``subject`` and ``body``.

    Environment Variables:
        NOTIFY_API_URL: GC Notify API endpoint URL
        NOTIFY_SERVICE_ID: Service id used as the JWT issuer
        NOTIFY_API_SECRET: Secret used to sign the JWT
        NOTIFY_EMAIL_TEMPLATE_ID: Generic email template id
        NOTIFY_SMS_TEMPLATE_ID: Generic SMS template id

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        api_url = settings.notify.NOTIFY_API_URL
        ```
    """

    NOTIFY_API_URL: str = Field(
        default="https://api.notification.canada.ca", alias="NOTIFY_API_URL"
    )
    NOTIFY_SERVICE_ID: str | None = Field(default=None, alias="NOTIFY_SERVICE_ID")
    NOTIFY_API_SECRET: str | None = Field(default=None, alias="NOTIFY_API_SECRET")
    NOTIFY_EMAIL_TEMPLATE_ID: str | None = Field(
        default=None, alias="NOTIFY_EMAIL_TEMPLATE_ID"
    )
    NOTIFY_SMS_TEMPLATE_ID: str | None = Field(
        default=None, alias="NOTIFY_SMS_TEMPLATE_ID"
    )
