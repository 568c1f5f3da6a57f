"""Batching and pacing of adapter calls.

Email goes out in fixed-size batches with a pause between batches; SMS goes
out one message at a time with a shorter pause between messages. Calls run
inline, one after another. Each call gets a deadline: the adapter stops
starting new messages once it passes, and counts those as failed. A raising
call fails every message in it, and the remaining batches still go out.
"""

import time
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

from infrastructure.configuration.features.reminders import ReminderSettings
from infrastructure.logging import get_module_logger
from infrastructure.notifications.adapters.base import EMAIL, SMS, DeliveryAdapter
from infrastructure.notifications.models import (
    DeliveryOutcome,
    EmailMessage,
    SmsMessage,
)

logger = get_module_logger()

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive chunks of at most ``size`` items."""
    if size < 1:
        raise ValueError("size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class IntervalTicker:
    """Enforces a minimum interval between consecutive ``wait()`` calls.

    The first call returns immediately.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None

    def wait(self) -> None:
        if self._last is not None and self.interval > 0:
            remaining = self.interval - (self._clock() - self._last)
            if remaining > 0:
                self._sleep(remaining)
        self._last = self._clock()


class BatchSender:
    """Paces adapter calls for one dispatch."""

    def __init__(
        self,
        batch_size: int = 100,
        batch_delay: float = 1.0,
        sms_delay: float = 0.1,
        timeout: Optional[float] = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.sms_delay = sms_delay
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(cls, reminders: ReminderSettings) -> "BatchSender":
        return cls(
            batch_size=reminders.email_batch_size,
            batch_delay=reminders.email_batch_delay_seconds,
            sms_delay=reminders.sms_delay_seconds,
            timeout=reminders.adapter_timeout_seconds,
        )

    def send_email(
        self,
        adapter: DeliveryAdapter,
        messages: Sequence[EmailMessage],
        on_batch: Optional[Callable[[DeliveryOutcome], None]] = None,
    ) -> DeliveryOutcome:
        """Send emails in batches.

        ``on_batch`` is called after each batch that delivered at least one
        message.
        """
        total = DeliveryOutcome()
        ticker = IntervalTicker(self.batch_delay, self._clock, self._sleep)
        for batch in chunked(messages, self.batch_size):
            ticker.wait()
            outcome = self._call(adapter, EMAIL, adapter.send_email, batch)
            if on_batch is not None and outcome.success_count > 0:
                on_batch(outcome)
            total.merge(outcome)
        return total

    def send_sms(
        self, adapter: DeliveryAdapter, messages: Sequence[SmsMessage]
    ) -> DeliveryOutcome:
        """Send SMS messages one at a time."""
        total = DeliveryOutcome()
        ticker = IntervalTicker(self.sms_delay, self._clock, self._sleep)
        for message in messages:
            ticker.wait()
            total.merge(self._call(adapter, SMS, adapter.send_sms, [message]))
        return total

    def _call(
        self,
        adapter: DeliveryAdapter,
        channel: str,
        send: Callable[..., DeliveryOutcome],
        batch: List[T],
    ) -> DeliveryOutcome:
        deadline = time.monotonic() + self.timeout if self.timeout else None
        try:
            return send(batch, deadline=deadline)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "adapter_call_failed",
                adapter=adapter.adapter_name,
                channel=channel,
                batch_size=len(batch),
                error=str(e),
            )
            return DeliveryOutcome.all_failed(
                len(batch), f"{adapter.adapter_name} {channel} call failed: {e}"
            )
