"""Mailchimp email adapter.

Goes through Mailchimp Transactional (``messages/send``), one request per
recipient. The Marketing API only sends campaigns to a whole audience list,
which cannot carry per-recipient links or respect consent filtering.
"""

from typing import Any, Dict, Optional, Sequence

import requests

from infrastructure.notifications.adapters.base import EMAIL, DeliveryAdapter
from infrastructure.notifications.adapters.credentials import MailchimpCredentials
from infrastructure.notifications.models import DeliveryOutcome, EmailMessage
from infrastructure.operations import OperationResult, classify_http_response

MAILCHIMP_API_URL = "https://mandrillapp.com/api/1.0"
COST_PER_EMAIL = 0.002
ACCEPTED_STATUSES = ("sent", "queued", "scheduled")


class MailchimpAdapter(DeliveryAdapter):
    """Mailchimp answers 200 with one status entry per recipient."""

    supports_email = True

    def __init__(
        self,
        credentials: MailchimpCredentials,
        configuration: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.configuration = configuration or {}
        self.timeout = timeout or 30

    @property
    def adapter_name(self) -> str:
        return "mailchimp"

    def _post(self, path: str, payload: Dict[str, Any]) -> requests.Response:
        return requests.post(
            f"{MAILCHIMP_API_URL}/{path}",
            json={"key": self.credentials.api_key.get_secret_value(), **payload},
            timeout=self.timeout,
        )

    def send_email(
        self, messages: Sequence[EmailMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        return self._send_each(messages, self._send_one, EMAIL, deadline)

    def _send_one(self, message: EmailMessage) -> OperationResult:
        payload: Dict[str, Any] = {
            "from_email": self.credentials.sender_email,
            "to": [{"email": message.to, "type": "to"}],
            "subject": message.subject,
            "html": message.html_body,
            "text": message.text_body,
        }
        if self.credentials.sender_name:
            payload["from_name"] = self.credentials.sender_name

        result = classify_http_response(
            self._post("messages/send", {"message": payload}),
            provider=self.adapter_name,
            success_codes=(200,),
        )
        if not result.is_success:
            return result

        # A 200 can still carry a per-recipient rejection.
        entries = result.data if isinstance(result.data, list) else []
        entry = entries[0] if entries else {}
        status = entry.get("status")
        if status in ACCEPTED_STATUSES:
            return result
        reason = entry.get("reject_reason") or status or "no status returned"
        return OperationResult.permanent_error(
            f"mailchimp rejected {message.to}: {reason}",
            error_code="REJECTED",
        )

    def estimate_cost(self, channel: str, count: int) -> float:
        return count * COST_PER_EMAIL if channel == EMAIL else 0.0

    def health_check(self) -> OperationResult:
        return classify_http_response(
            self._post("users/ping", {}),
            provider=self.adapter_name,
            success_codes=(200,),
        )
