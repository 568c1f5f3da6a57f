"""Delivery adapters.

The default GC Notify provider plus one adapter per supported integration
type, all behind the ``DeliveryAdapter`` interface.
"""

from infrastructure.notifications.adapters.base import (
    EMAIL,
    SMS,
    AdapterConstructionError,
    DeliveryAdapter,
)
from infrastructure.notifications.adapters.brevo import BrevoAdapter
from infrastructure.notifications.adapters.credentials import (
    BrevoCredentials,
    MailchimpCredentials,
    MailgunCredentials,
    SendGridCredentials,
    TelegramCredentials,
    TwilioCredentials,
    WhatsAppCredentials,
    build_credential_bundle,
)
from infrastructure.notifications.adapters.default import DefaultProvider
from infrastructure.notifications.adapters.factory import create_adapter
from infrastructure.notifications.adapters.mailchimp import MailchimpAdapter
from infrastructure.notifications.adapters.mailgun import MailgunAdapter
from infrastructure.notifications.adapters.sendgrid import SendGridAdapter
from infrastructure.notifications.adapters.telegram import TelegramAdapter
from infrastructure.notifications.adapters.twilio import TwilioAdapter
from infrastructure.notifications.adapters.whatsapp import WhatsAppAdapter

__all__ = [
    "EMAIL",
    "SMS",
    "AdapterConstructionError",
    "DeliveryAdapter",
    "DefaultProvider",
    "SendGridAdapter",
    "MailgunAdapter",
    "MailchimpAdapter",
    "BrevoAdapter",
    "TwilioAdapter",
    "WhatsAppAdapter",
    "TelegramAdapter",
    "SendGridCredentials",
    "MailgunCredentials",
    "MailchimpCredentials",
    "BrevoCredentials",
    "TwilioCredentials",
    "WhatsAppCredentials",
    "TelegramCredentials",
    "build_credential_bundle",
    "create_adapter",
]
