"""Brevo (formerly Sendinblue) email and SMS adapter.

SMS needs a sender phone on the integration; without one, SMS is reported as
unsupported and every message fails.
"""

from typing import Any, Dict, Optional, Sequence

import requests

from infrastructure.notifications.adapters.base import (
    EMAIL,
    SMS,
    DeliveryAdapter,
)
from infrastructure.notifications.adapters.credentials import BrevoCredentials
from infrastructure.notifications.models import (
    DeliveryOutcome,
    EmailMessage,
    SmsMessage,
)
from infrastructure.operations import OperationResult, classify_http_response

BREVO_API_URL = "https://api.brevo.com/v3"
COST_PER_EMAIL = 0.0005
COST_PER_SMS = 0.02


class BrevoAdapter(DeliveryAdapter):
    supports_email = True

    def __init__(
        self,
        credentials: BrevoCredentials,
        configuration: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.configuration = configuration or {}
        self.timeout = timeout or 30
        self.supports_sms = bool(credentials.sender_phone)

    @property
    def adapter_name(self) -> str:
        return "brevo"

    def _headers(self) -> Dict[str, str]:
        return {
            "api-key": self.credentials.api_key.get_secret_value(),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def send_email(
        self, messages: Sequence[EmailMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        return self._send_each(messages, self._send_one_email, EMAIL, deadline)

    def send_sms(
        self, messages: Sequence[SmsMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        if not self.supports_sms:
            return super().send_sms(messages, deadline)
        return self._send_each(messages, self._send_one_sms, SMS, deadline)

    def _send_one_email(self, message: EmailMessage) -> OperationResult:
        sender: Dict[str, str] = {"email": self.credentials.sender_email}
        if self.credentials.sender_name:
            sender["name"] = self.credentials.sender_name
        response = requests.post(
            f"{BREVO_API_URL}/smtp/email",
            json={
                "sender": sender,
                "to": [{"email": message.to}],
                "subject": message.subject,
                "htmlContent": message.html_body,
                "textContent": message.text_body,
            },
            headers=self._headers(),
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)

    def _send_one_sms(self, message: SmsMessage) -> OperationResult:
        response = requests.post(
            f"{BREVO_API_URL}/transactionalSMS/sms",
            json={
                "sender": self.credentials.sender_phone,
                "recipient": message.to,
                "content": message.body,
                "type": "transactional",
            },
            headers=self._headers(),
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)

    def estimate_cost(self, channel: str, count: int) -> float:
        if channel == EMAIL:
            return count * COST_PER_EMAIL
        if channel == SMS:
            return count * COST_PER_SMS
        return 0.0

    def health_check(self) -> OperationResult:
        response = requests.get(
            f"{BREVO_API_URL}/account", headers=self._headers(), timeout=self.timeout
        )
        return classify_http_response(response, provider=self.adapter_name)
