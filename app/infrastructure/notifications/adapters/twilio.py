"""Twilio SMS adapter."""

from typing import Any, Dict, Optional, Sequence

import requests

from infrastructure.notifications.adapters.base import SMS, DeliveryAdapter
from infrastructure.notifications.adapters.credentials import TwilioCredentials
from infrastructure.notifications.models import DeliveryOutcome, SmsMessage
from infrastructure.operations import OperationResult, classify_http_response

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"
COST_PER_SMS = 0.0079


class TwilioAdapter(DeliveryAdapter):
    """Posts one message per recipient to the Messages resource (201 on success)."""

    supports_sms = True

    def __init__(
        self,
        credentials: TwilioCredentials,
        configuration: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.configuration = configuration or {}
        self.timeout = timeout or 30

    @property
    def adapter_name(self) -> str:
        return "twilio"

    @property
    def _account_url(self) -> str:
        return f"{TWILIO_API_URL}/Accounts/{self.credentials.account_sid}"

    @property
    def _auth(self):
        return (
            self.credentials.account_sid,
            self.credentials.auth_token.get_secret_value(),
        )

    def send_sms(
        self, messages: Sequence[SmsMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        return self._send_each(messages, self._send_one, SMS, deadline)

    def _send_one(self, message: SmsMessage) -> OperationResult:
        response = requests.post(
            f"{self._account_url}/Messages.json",
            auth=self._auth,
            data={
                "To": message.to,
                "From": self.credentials.sender_phone,
                "Body": message.body,
            },
            timeout=self.timeout,
        )
        return classify_http_response(
            response, provider=self.adapter_name, success_codes=(200, 201)
        )

    def estimate_cost(self, channel: str, count: int) -> float:
        return count * COST_PER_SMS if channel == SMS else 0.0

    def health_check(self) -> OperationResult:
        response = requests.get(
            f"{self._account_url}.json", auth=self._auth, timeout=self.timeout
        )
        return classify_http_response(response, provider=self.adapter_name)
