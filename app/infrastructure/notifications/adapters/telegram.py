"""Telegram Bot API message adapter.

Telegram addresses chats, not phone numbers. The recipient's normalized
phone is sent as the ``chat_id``; Telegram accepts it only where it names a
chat the bot can reach, and rejects the rest with ``ok: false``.

The bot token is part of every URL and is redacted from error messages.
"""

from typing import Any, Dict, Optional, Sequence

import requests

from infrastructure.notifications.adapters.base import SMS, DeliveryAdapter
from infrastructure.notifications.adapters.credentials import TelegramCredentials
from infrastructure.notifications.models import DeliveryOutcome, SmsMessage
from infrastructure.operations import OperationResult, classify_http_response

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramAdapter(DeliveryAdapter):
    """Bot API calls are free. Telegram reports failures in an ``ok`` flag."""

    supports_sms = True

    def __init__(
        self,
        credentials: TelegramCredentials,
        configuration: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.configuration = configuration or {}
        self.timeout = timeout or 30

    @property
    def adapter_name(self) -> str:
        return "telegram"

    @property
    def _token(self) -> str:
        return self.credentials.bot_token.get_secret_value()

    def _url(self, method: str) -> str:
        return f"{TELEGRAM_API_URL}/bot{self._token}/{method}"

    def _call(self, http_method: str, method: str, **kwargs) -> OperationResult:
        try:
            response = requests.request(
                http_method, self._url(method), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise type(e)(str(e).replace(self._token, "<redacted>")) from None

        result = classify_http_response(
            response, provider=self.adapter_name, success_codes=(200,)
        )
        if result.is_success and not (result.data or {}).get("ok"):
            description = (result.data or {}).get("description", "request not ok")
            return OperationResult.permanent_error(
                f"telegram rejected request: {description}", error_code="NOT_OK"
            )
        return result

    def send_sms(
        self, messages: Sequence[SmsMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        return self._send_each(messages, self._send_one, SMS, deadline)

    def _send_one(self, message: SmsMessage) -> OperationResult:
        return self._call(
            "POST",
            "sendMessage",
            json={"chat_id": message.to, "text": message.body},
        )

    def health_check(self) -> OperationResult:
        return self._call("GET", "getMe")
