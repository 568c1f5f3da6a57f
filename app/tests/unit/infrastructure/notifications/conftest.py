"""Test fixtures for the reminder pipeline."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest
from cryptography.fernet import Fernet

from infrastructure.notifications.adapters.base import DeliveryAdapter
from infrastructure.notifications.models import (
    DeliveryOutcome,
    EmailMessage,
    Event,
    Integration,
    IntegrationContact,
    NotificationChannelType,
    NotificationObligation,
    Registration,
    SmsMessage,
    TimingStage,
    ViewerProfile,
)
from infrastructure.notifications.orchestrator import ReminderConfig
from infrastructure.notifications.store import InMemoryNotificationStore
from infrastructure.notifications.throttling import BatchSender
from infrastructure.operations import OperationResult
from infrastructure.security.credentials import CredentialCipher

RUN_AT = datetime(2024, 10, 24, 14, 2, tzinfo=timezone.utc)
EVENT_START = datetime(2024, 10, 25, 14, 0, tzinfo=timezone.utc)
APP_URL = "https://app.example.com"


class FakeAdapter(DeliveryAdapter):
    """In-memory adapter recording every call.

    Addresses listed in ``failing`` are counted as failed; ``raise_on_call``
    makes every call raise.
    """

    supports_email = True
    supports_sms = True

    def __init__(
        self,
        name: str = "fake",
        failing: Sequence[str] = (),
        raise_on_call: Optional[Exception] = None,
        cost_per_message: float = 0.0,
    ):
        self._name = name
        self.failing = set(failing)
        self.raise_on_call = raise_on_call
        self.cost_per_message = cost_per_message
        self.email_calls: List[List[EmailMessage]] = []
        self.sms_calls: List[List[SmsMessage]] = []

    @property
    def adapter_name(self) -> str:
        return self._name

    def _outcome(self, recipients: List[str]) -> DeliveryOutcome:
        if self.raise_on_call is not None:
            raise self.raise_on_call
        failed = [r for r in recipients if r in self.failing]
        success = len(recipients) - len(failed)
        return DeliveryOutcome(
            success_count=success,
            failure_count=len(failed),
            estimated_cost=success * self.cost_per_message,
            errors=[f"rejected {r}" for r in failed],
        )

    def send_email(self, messages, deadline=None):
        self.email_calls.append(list(messages))
        return self._outcome([m.to for m in messages])

    def send_sms(self, messages, deadline=None):
        self.sms_calls.append(list(messages))
        return self._outcome([m.to for m in messages])

    def health_check(self) -> OperationResult:
        return OperationResult.success()

    @property
    def emails_sent_to(self) -> List[str]:
        return [m.to for call in self.email_calls for m in call]

    @property
    def sms_sent_to(self) -> List[str]:
        return [m.to for call in self.sms_calls for m in call]


@pytest.fixture
def run_at():
    return RUN_AT


@pytest.fixture
def store():
    """Fresh in-memory store."""
    return InMemoryNotificationStore()


@pytest.fixture
def cipher():
    return CredentialCipher(Fernet.generate_key().decode())


@pytest.fixture
def event_factory():
    """Factory for Event instances.

    Example:
        event = event_factory(id="evt-2", custom_message="Bring questions")
    """

    def _factory(
        id: str = "evt-1",
        title: str = "Launch Day",
        scheduled_start: datetime = EVENT_START,
        host_name: Optional[str] = "Ada Lovelace",
        host_company: Optional[str] = None,
        **kwargs: Any,
    ) -> Event:
        return Event(
            id=id,
            title=title,
            scheduled_start=scheduled_start,
            host_name=host_name,
            host_company=host_company,
            **kwargs,
        )

    return _factory


@pytest.fixture
def registration_factory():
    """Factory for Registration instances with an attached viewer profile."""

    def _factory(
        event_id: str = "evt-1",
        email: Optional[str] = "viewer@example.com",
        phone: Optional[str] = None,
        consent_email: bool = True,
        consent_sms: bool = True,
        first_name: str = "Viewer",
        id: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> Registration:
        registration_id = id or f"reg-{email or phone}"
        return Registration(
            id=registration_id,
            event_id=event_id,
            access_token=access_token or f"tok-{registration_id}",
            viewer=ViewerProfile(
                first_name=first_name,
                email=email,
                phone=phone,
                consent_email=consent_email,
                consent_sms=consent_sms,
            ),
        )

    return _factory


@pytest.fixture
def contact_factory():
    """Factory for IntegrationContact instances (opted in by default here)."""

    def _factory(
        id: str = "contact-1",
        integration_id: str = "int-1",
        email: Optional[str] = "contact@example.com",
        phone: Optional[str] = None,
        consent_email: bool = True,
        consent_sms: bool = True,
        first_name: str = "Contact",
    ) -> IntegrationContact:
        return IntegrationContact(
            id=id,
            integration_id=integration_id,
            email=email,
            phone=phone,
            consent_email=consent_email,
            consent_sms=consent_sms,
            first_name=first_name,
        )

    return _factory


@pytest.fixture
def integration_factory(cipher):
    """Factory for Integration instances with credentials encrypted by ``cipher``."""

    def _factory(
        id: str = "int-1",
        service_type: str = "sendgrid",
        api_key: Optional[str] = "SG.test-key",
        api_secret: Optional[str] = None,
        sender_email: Optional[str] = "events@example.com",
        sender_phone: Optional[str] = None,
        configuration: Optional[Dict[str, Any]] = None,
        is_active: bool = True,
    ) -> Integration:
        return Integration(
            id=id,
            service_type=service_type,
            service_name=service_type.title(),
            api_key_encrypted=cipher.encrypt(api_key) if api_key else None,
            api_secret_encrypted=cipher.encrypt(api_secret) if api_secret else None,
            sender_email=sender_email,
            sender_phone=sender_phone,
            configuration=configuration or {},
            is_active=is_active,
        )

    return _factory


@pytest.fixture
def obligation_factory():
    """Factory for NotificationObligation instances."""

    def _factory(
        event_id: str = "evt-1",
        timing_stage: TimingStage = TimingStage.ONE_DAY_BEFORE,
        scheduled_time: datetime = datetime(2024, 10, 24, 14, 0, tzinfo=timezone.utc),
        channel: NotificationChannelType = NotificationChannelType.EMAIL,
        **kwargs: Any,
    ) -> NotificationObligation:
        return NotificationObligation(
            id=kwargs.pop("id", f"{event_id}:{TimingStage(timing_stage).value}"),
            event_id=event_id,
            timing_stage=timing_stage,
            scheduled_time=scheduled_time,
            channel=channel,
            **kwargs,
        )

    return _factory


@pytest.fixture
def fake_adapter_factory():
    def _factory(**kwargs: Any) -> FakeAdapter:
        return FakeAdapter(**kwargs)

    return _factory


@pytest.fixture
def reminder_config():
    return ReminderConfig(
        app_url=APP_URL,
        email_batch_delay=0,
        sms_delay=0,
        adapter_timeout=5,
    )


@pytest.fixture
def immediate_sender():
    """Batch sender that never sleeps and calls adapters inline."""
    return BatchSender(
        batch_size=100,
        batch_delay=0,
        sms_delay=0,
        timeout=None,
        sleep=lambda _seconds: None,
    )
