"""WhatsApp Business (Meta Cloud API) message adapter.

Reminders that would go out as SMS are sent as WhatsApp text messages. The
sending number is identified by ``phone_number_id`` in the integration
configuration.
"""

import re
from typing import Any, Dict, Optional, Sequence

import requests

from infrastructure.notifications.adapters.base import (
    SMS,
    AdapterConstructionError,
    DeliveryAdapter,
)
from infrastructure.notifications.adapters.credentials import WhatsAppCredentials
from infrastructure.notifications.models import DeliveryOutcome, SmsMessage
from infrastructure.operations import OperationResult, classify_http_response

WHATSAPP_API_URL = "https://graph.facebook.com/v18.0"
COST_PER_MESSAGE = 0.01

_NON_DIGITS = re.compile(r"\D")


class WhatsAppAdapter(DeliveryAdapter):
    supports_sms = True

    def __init__(
        self,
        credentials: WhatsAppCredentials,
        configuration: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        configuration = configuration or {}
        phone_number_id = str(configuration.get("phone_number_id") or "")
        if not phone_number_id.isdigit():
            raise AdapterConstructionError(
                "WhatsApp integration requires a numeric phone_number_id",
                service_type="whatsapp_business",
                error_code="INVALID_CONFIGURATION",
            )
        self.credentials = credentials
        self.configuration = configuration
        self.phone_number_id = phone_number_id
        self.timeout = timeout or 30

    @property
    def adapter_name(self) -> str:
        return "whatsapp_business"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credentials.access_token.get_secret_value()}",
            "Content-Type": "application/json",
        }

    def send_sms(
        self, messages: Sequence[SmsMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        return self._send_each(messages, self._send_one, SMS, deadline)

    def _send_one(self, message: SmsMessage) -> OperationResult:
        # WhatsApp wants the number without "+" or punctuation.
        response = requests.post(
            f"{WHATSAPP_API_URL}/{self.phone_number_id}/messages",
            json={
                "messaging_product": "whatsapp",
                "to": _NON_DIGITS.sub("", message.to),
                "type": "text",
                "text": {"preview_url": True, "body": message.body},
            },
            headers=self._headers(),
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)

    def estimate_cost(self, channel: str, count: int) -> float:
        return count * COST_PER_MESSAGE if channel == SMS else 0.0

    def health_check(self) -> OperationResult:
        response = requests.get(
            f"{WHATSAPP_API_URL}/{self.phone_number_id}",
            params={"fields": "verified_name,display_phone_number,quality_rating"},
            headers=self._headers(),
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)
