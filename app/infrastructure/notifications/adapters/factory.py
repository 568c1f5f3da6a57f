"""Adapter factory.

Builds the adapter for an integration from its service type, decrypted
credentials and configuration. Construction never falls back to the default
provider: any failure raises ``AdapterConstructionError``.
"""

from typing import Any, Dict, Mapping, Optional, Type

from infrastructure.logging import get_module_logger
from infrastructure.notifications.adapters.base import (
    AdapterConstructionError,
    DeliveryAdapter,
)
from infrastructure.notifications.adapters.brevo import BrevoAdapter
from infrastructure.notifications.adapters.credentials import build_credential_bundle
from infrastructure.notifications.adapters.mailchimp import MailchimpAdapter
from infrastructure.notifications.adapters.mailgun import MailgunAdapter
from infrastructure.notifications.adapters.sendgrid import SendGridAdapter
from infrastructure.notifications.adapters.telegram import TelegramAdapter
from infrastructure.notifications.adapters.twilio import TwilioAdapter
from infrastructure.notifications.adapters.whatsapp import WhatsAppAdapter

logger = get_module_logger()

ADAPTER_CLASSES: Dict[str, Type[DeliveryAdapter]] = {
    "sendgrid": SendGridAdapter,
    "mailgun": MailgunAdapter,
    "mailchimp": MailchimpAdapter,
    "brevo": BrevoAdapter,
    "twilio": TwilioAdapter,
    "whatsapp_business": WhatsAppAdapter,
    "telegram": TelegramAdapter,
}


def create_adapter(
    service_type: str,
    credentials: Mapping[str, Optional[str]],
    configuration: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> DeliveryAdapter:
    """Create a delivery adapter for an integration.

    Args:
        service_type: Integration service type
        credentials: Decrypted credential fields
        configuration: Integration configuration
        timeout: Per-request timeout in seconds

    Returns:
        A ready-to-use adapter

    Raises:
        AdapterConstructionError: If the type is unsupported or the
            credentials are rejected
    """
    bundle = build_credential_bundle(service_type, credentials, configuration)
    adapter = ADAPTER_CLASSES[bundle.service_type](
        bundle, configuration=configuration, timeout=timeout
    )

    validation = adapter.validate_credentials()
    if not validation.is_success:
        raise AdapterConstructionError(
            validation.message,
            service_type=service_type,
            error_code=validation.error_code or "INVALID_CREDENTIALS",
        )

    logger.debug(
        "adapter_created",
        service_type=service_type,
        capabilities=adapter.capabilities,
    )
    return adapter
