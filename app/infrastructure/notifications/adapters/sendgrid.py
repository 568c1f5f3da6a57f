"""SendGrid email adapter."""

from typing import Any, Dict, Optional, Sequence

import requests

from infrastructure.notifications.adapters.base import EMAIL, DeliveryAdapter
from infrastructure.notifications.adapters.credentials import SendGridCredentials
from infrastructure.notifications.models import DeliveryOutcome, EmailMessage
from infrastructure.operations import OperationResult, classify_http_response

SENDGRID_API_URL = "https://api.sendgrid.com/v3"
COST_PER_EMAIL = 0.70 / 1000


class SendGridAdapter(DeliveryAdapter):
    """Sends one ``mail/send`` request per recipient. SendGrid answers 202."""

    supports_email = True

    def __init__(
        self,
        credentials: SendGridCredentials,
        configuration: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.configuration = configuration or {}
        self.timeout = timeout or 30

    @property
    def adapter_name(self) -> str:
        return "sendgrid"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credentials.api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }

    def send_email(
        self, messages: Sequence[EmailMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        return self._send_each(messages, self._send_one, EMAIL, deadline)

    def _send_one(self, message: EmailMessage) -> OperationResult:
        sender: Dict[str, str] = {"email": self.credentials.sender_email}
        if self.credentials.sender_name:
            sender["name"] = self.credentials.sender_name
        payload = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": sender,
            "subject": message.subject,
            "content": [
                {"type": "text/plain", "value": message.text_body},
                {"type": "text/html", "value": message.html_body},
            ],
        }
        response = requests.post(
            f"{SENDGRID_API_URL}/mail/send",
            json=payload,
            headers=self._headers(),
            timeout=self.timeout,
        )
        return classify_http_response(
            response, provider=self.adapter_name, success_codes=(202,)
        )

    def estimate_cost(self, channel: str, count: int) -> float:
        """List price per email. The daily free allowance is not applied per call."""
        return count * COST_PER_EMAIL if channel == EMAIL else 0.0

    def health_check(self) -> OperationResult:
        response = requests.get(
            f"{SENDGRID_API_URL}/user/profile",
            headers=self._headers(),
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)
