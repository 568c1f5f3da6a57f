"""Fixtures for delivery adapter tests."""

from unittest.mock import MagicMock

import pytest
import requests

from infrastructure.notifications.models import EmailMessage, SmsMessage


@pytest.fixture
def http_response():
    """Factory for canned ``requests`` responses.

    Example:
        mock_post.return_value = http_response(202)
    """

    def _factory(status_code: int = 200, body=None, text: str = "", headers=None):
        response = MagicMock(spec=requests.Response)
        response.status_code = status_code
        response.headers = headers or {}
        response.text = text
        response.content = b"{}" if body is not None else b""
        response.json.return_value = body
        return response

    return _factory


@pytest.fixture
def email_messages():
    def _factory(*recipients: str):
        return [
            EmailMessage(
                to=to,
                subject="Reminder: Launch Day starts in 1 hour",
                html_body="<p>See you soon</p>",
                text_body="See you soon",
            )
            for to in recipients
        ]

    return _factory


@pytest.fixture
def sms_messages():
    def _factory(*recipients: str):
        return [SmsMessage(to=to, body="Launch Day starts in 1 hour!") for to in recipients]

    return _factory
