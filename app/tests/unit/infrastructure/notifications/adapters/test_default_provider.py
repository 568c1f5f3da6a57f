"""Unit tests for the GC Notify default provider."""

import time
from unittest.mock import patch

import pytest
import requests

from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.notifications.adapters import DefaultProvider

pytestmark = pytest.mark.unit


@pytest.fixture
def notify_settings():
    return NotifySettings(
        NOTIFY_SERVICE_ID="service-id",
        NOTIFY_API_SECRET="secret",
        NOTIFY_EMAIL_TEMPLATE_ID="email-template",
        NOTIFY_SMS_TEMPLATE_ID="sms-template",
    )


class TestDefaultProvider:
    @patch("infrastructure.notifications.adapters.default.send_email_notification")
    def test_email_personalisation(self, mock_send, notify_settings, http_response, email_messages):
        mock_send.return_value = http_response(201, body={"id": "n1"})
        provider = DefaultProvider(notify_settings, timeout=4)

        outcome = provider.send_email(email_messages("a@example.com"))

        assert outcome.success_count == 1
        assert outcome.estimated_cost == 0.0
        mock_send.assert_called_once_with(
            notify_settings,
            "a@example.com",
            {"subject": "Reminder: Launch Day starts in 1 hour", "body": "See you soon"},
            timeout=4,
        )

    @patch("infrastructure.notifications.adapters.default.send_sms_notification")
    def test_sms_personalisation(self, mock_send, notify_settings, http_response, sms_messages):
        mock_send.return_value = http_response(201)

        outcome = DefaultProvider(notify_settings).send_sms(sms_messages("+15551234567"))

        assert outcome.success_count == 1
        assert mock_send.call_args.args[2] == {"body": "Launch Day starts in 1 hour!"}

    @patch("infrastructure.notifications.adapters.default.send_email_notification")
    def test_missing_template_fails_without_calling(self, mock_send, email_messages):
        provider = DefaultProvider(NotifySettings(NOTIFY_EMAIL_TEMPLATE_ID=None))

        outcome = provider.send_email(email_messages("a@example.com", "b@example.com"))

        mock_send.assert_not_called()
        assert outcome.failure_count == 2
        assert outcome.errors == ["NOTIFY_EMAIL_TEMPLATE_ID is missing"]

    @patch("infrastructure.notifications.adapters.default.send_email_notification")
    def test_connection_error_counts_failure(self, mock_send, notify_settings, email_messages):
        mock_send.side_effect = requests.ConnectionError("refused")

        outcome = DefaultProvider(notify_settings).send_email(email_messages("a@example.com"))

        assert outcome.failure_count == 1
        assert outcome.errors[0].startswith("default connection error")

    @patch("infrastructure.notifications.adapters.default.send_email_notification")
    def test_passed_deadline_sends_nothing(self, mock_send, notify_settings, email_messages):
        provider = DefaultProvider(notify_settings)

        outcome = provider.send_email(
            email_messages("a@example.com", "b@example.com"),
            deadline=time.monotonic() - 1,
        )

        mock_send.assert_not_called()
        assert outcome.success_count == 0
        assert outcome.failure_count == 2
        assert outcome.errors == ["default email deadline passed, 2 message(s) not sent"]

    def test_validate_credentials(self, notify_settings):
        assert DefaultProvider(notify_settings).validate_credentials().is_success

        missing = DefaultProvider(NotifySettings(NOTIFY_SERVICE_ID=None, NOTIFY_API_SECRET=None))
        result = missing.validate_credentials()

        assert result.error_code == "INVALID_CREDENTIALS"
        assert result.message == "NOTIFY_SERVICE_ID is missing"
        assert not missing.health_check().is_success
