"""Default delivery provider backed by GC Notify.

Used whenever an event has no active integration. Both channels go through
generic Notify templates that take the rendered content as personalisation.
"""

from typing import Optional, Sequence

from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.notifications.adapters.base import EMAIL, SMS, DeliveryAdapter
from infrastructure.notifications.models import (
    DeliveryOutcome,
    EmailMessage,
    SmsMessage,
)
from infrastructure.operations import OperationResult, classify_http_response
from integrations.notify import (
    create_authorization_header,
    send_email_notification,
    send_sms_notification,
)


class DefaultProvider(DeliveryAdapter):
    """GC Notify adapter. Notify has no per-message cost."""

    supports_email = True
    supports_sms = True

    def __init__(self, notify: NotifySettings, timeout: Optional[float] = None):
        self.notify = notify
        self.timeout = timeout

    @property
    def adapter_name(self) -> str:
        return "default"

    def send_email(
        self, messages: Sequence[EmailMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        if not self.notify.NOTIFY_EMAIL_TEMPLATE_ID:
            return DeliveryOutcome.all_failed(
                len(messages), "NOTIFY_EMAIL_TEMPLATE_ID is missing"
            )
        return self._send_each(messages, self._send_one_email, EMAIL, deadline)

    def send_sms(
        self, messages: Sequence[SmsMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        if not self.notify.NOTIFY_SMS_TEMPLATE_ID:
            return DeliveryOutcome.all_failed(
                len(messages), "NOTIFY_SMS_TEMPLATE_ID is missing"
            )
        return self._send_each(messages, self._send_one_sms, SMS, deadline)

    def _send_one_email(self, message: EmailMessage) -> OperationResult:
        response = send_email_notification(
            self.notify,
            message.to,
            {"subject": message.subject, "body": message.text_body},
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)

    def _send_one_sms(self, message: SmsMessage) -> OperationResult:
        response = send_sms_notification(
            self.notify,
            message.to,
            {"body": message.body},
            timeout=self.timeout,
        )
        return classify_http_response(response, provider=self.adapter_name)

    def validate_credentials(self) -> OperationResult:
        try:
            create_authorization_header(self.notify)
        except ValueError as e:
            return OperationResult.permanent_error(str(e), error_code="INVALID_CREDENTIALS")
        return OperationResult.success(message="Notify credentials present")

    def health_check(self) -> OperationResult:
        return self.validate_credentials()
