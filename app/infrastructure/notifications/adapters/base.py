"""Delivery adapter abstract base class.

Every way of delivering a reminder (the built-in default provider and each
third-party integration) implements this interface, so the orchestrator and
the batch sender never need to know which provider they are talking to.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, TypeVar

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    DeliveryOutcome,
    EmailMessage,
    SmsMessage,
)
from infrastructure.operations import OperationResult, classify_http_error

logger = get_module_logger()

EMAIL = "email"
SMS = "sms"

MessageT = TypeVar("MessageT", EmailMessage, SmsMessage)


class AdapterConstructionError(Exception):
    """Raised when an adapter cannot be built from its credentials.

    Attributes:
        service_type: Integration service type that failed
        error_code: Machine-readable reason
    """

    def __init__(
        self,
        message: str,
        service_type: str | None = None,
        error_code: str = "ADAPTER_CONSTRUCTION_FAILED",
    ):
        self.service_type = service_type
        self.error_code = error_code
        super().__init__(message)


class DeliveryAdapter(ABC):
    """Abstract base class for delivery adapters.

    Send methods must not raise for provider failures: each message that
    cannot be delivered is counted in ``DeliveryOutcome.failure_count``.
    Unsupported channels fail every message.

    ``deadline`` is a ``time.monotonic()`` value. Messages not yet started
    when it passes are not sent and count as failed; the request already in
    flight is bounded by the adapter's per-request timeout.

    Example Implementation:
        class ExampleAdapter(DeliveryAdapter):
            supports_email = True

            @property
            def adapter_name(self) -> str:
                return "example"

            def send_email(self, messages, deadline=None):
                return self._send_each(messages, self._post_email, EMAIL, deadline)
    """

    supports_email: bool = False
    supports_sms: bool = False

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Adapter identifier used in logs and usage records."""

    @property
    def capabilities(self) -> List[str]:
        caps = []
        if self.supports_email:
            caps.append(EMAIL)
        if self.supports_sms:
            caps.append(SMS)
        return caps

    def send_email(
        self, messages: Sequence[EmailMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        """Send one email per message."""
        return DeliveryOutcome.all_failed(
            len(messages), f"{self.adapter_name} does not support email"
        )

    def send_sms(
        self, messages: Sequence[SmsMessage], deadline: Optional[float] = None
    ) -> DeliveryOutcome:
        """Send one SMS per message."""
        return DeliveryOutcome.all_failed(
            len(messages), f"{self.adapter_name} does not support sms"
        )

    def estimate_cost(self, channel: str, count: int) -> float:
        """Estimated provider cost in USD for ``count`` messages."""
        return 0.0

    def validate_credentials(self) -> OperationResult:
        """Check the credential bundle's shape without calling the provider."""
        return OperationResult.success(message="credentials accepted")

    @abstractmethod
    def health_check(self) -> OperationResult:
        """Verify the provider is reachable with these credentials."""

    def _send_each(
        self,
        messages: Sequence[MessageT],
        send_one: Callable[[MessageT], OperationResult],
        channel: str,
        deadline: Optional[float] = None,
    ) -> DeliveryOutcome:
        """Send messages one by one, counting successes and failures."""
        outcome = DeliveryOutcome()
        for index, message in enumerate(messages):
            if deadline is not None and time.monotonic() >= deadline:
                skipped = len(messages) - index
                outcome.failure_count += skipped
                outcome.errors.append(
                    f"{self.adapter_name} {channel} deadline passed, "
                    f"{skipped} message(s) not sent"
                )
                logger.warning(
                    "delivery_deadline_passed",
                    adapter=self.adapter_name,
                    channel=channel,
                    sent=outcome.success_count,
                    skipped=skipped,
                )
                break

            try:
                result = send_one(message)
            except Exception as e:  # pylint: disable=broad-except
                result = classify_http_error(e, provider=self.adapter_name)

            if result.is_success:
                outcome.success_count += 1
                continue

            outcome.failure_count += 1
            if result.message not in outcome.errors:
                outcome.errors.append(result.message)
            logger.warning(
                "delivery_message_failed",
                adapter=self.adapter_name,
                channel=channel,
                error=result.message,
                error_code=result.error_code,
            )

        outcome.estimated_cost = self.estimate_cost(channel, outcome.success_count)
        return outcome
