"""Mailgun email adapter.

The sending domain comes from the integration configuration (``domain``);
``region: eu`` switches to the EU API host.
"""

from typing import Any, Dict, Optional, Sequence

import requests

from infrastructure.notifications.adapters.base import (
    EMAIL,
    AdapterConstructionError,
    DeliveryAdapter,
)
from infrastructure.notifications.adapters.credentials import MailgunCredentials
from infrastructure.notifications.models import DeliveryOutcome, EmailMessage
from infrastructure.operations import OperationResult, classify_http_response

MAILGUN_API_URLS = {
    "us": "https://api.mailgun.net/v3",
    "eu": "https://api.eu.mailgun.net/v3",
}
COST_PER_EMAIL = 0.80 / 1000


class MailgunAdapter(DeliveryAdapter):
    supports_email = True

    def __init__(
        self,
        credentials: MailgunCredentials,
        configuration: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        configuration = configuration or {}
        domain = configuration.get("domain")
        if not domain:
            raise AdapterConstructionError(
                "Mailgun integration requires a sending domain",
                service_type="mailgun",
                error_code="INVALID_CONFIGURATION",
            )
        region = str(configuration.get("region", "us")).lower()
        if region not in MAILGUN_API_URLS:
            raise AdapterConstructionError(
                f"Unknown Mailgun region: {region}",
                service_type="mailgun",
                error_code="INVALID_CONFIGURATION",
            )
        self.credentials = credentials
        self.domain = domain
        self.base_url = MAILGUN_API_URLS[region]
        self.timeout = timeout or 30

    @property
    def adapter_name(self) -> str:
        return "mailgun"

    @property
    def _auth(self):
        return ("api", self.credentials.api_key.get_secret_value())

    def _sender(self) -> str:
        if self.credentials.sender_name:
            return f"{self.credentials.sender_name} <{self.credentials.sender_email}>"
        return self.credentials.sender_email

    def send_email(
        self, messages: Sequence[EmailMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        return self._send_each(messages, self._send_one, EMAIL, deadline)

    def _send_one(self, message: EmailMessage) -> OperationResult:
        response = requests.post(
            f"{self.base_url}/{self.domain}/messages",
            auth=self._auth,
            data={
                "from": self._sender(),
                "to": message.to,
                "subject": message.subject,
                "text": message.text_body,
                "html": message.html_body,
            },
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)

    def estimate_cost(self, channel: str, count: int) -> float:
        return count * COST_PER_EMAIL if channel == EMAIL else 0.0

    def health_check(self) -> OperationResult:
        response = requests.get(
            f"{self.base_url}/domains/{self.domain}",
            auth=self._auth,
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)
