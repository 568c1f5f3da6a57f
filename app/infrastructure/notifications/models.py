"""Reminder pipeline core models.

Pydantic models for everything the pipeline persists or passes between
components: obligations, events and their recipient source, stored
registrations and contacts, the normalized recipient union, integrations and
their usage logs. Delivery outcomes and run summaries are plain dataclasses.

Payload shapes are validated once, when records enter the pipeline, so the
rest of the code can rely on the discriminated unions below.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import quote

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class TimingStage(str, Enum):
    """Named offsets relative to an event's start.

    ``now`` is accepted as a legacy alias of ``immediate``.
    """

    TWO_WEEKS_BEFORE = "2_weeks_before"
    ONE_WEEK_BEFORE = "1_week_before"
    THREE_DAYS_BEFORE = "3_days_before"
    ONE_DAY_BEFORE = "1_day_before"
    TWELVE_HOURS_BEFORE = "12_hours_before"
    ONE_HOUR_BEFORE = "1_hour_before"
    FIFTEEN_MINUTES_BEFORE = "15_minutes_before"
    IMMEDIATE = "immediate"
    AT_EVENT_START = "at_event_start"

    @classmethod
    def _missing_(cls, value):
        if value == "now":
            return cls.IMMEDIATE
        return None


class NotificationChannelType(str, Enum):
    """Which channels an obligation delivers on."""

    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"

    @property
    def includes_email(self) -> bool:
        return self in (NotificationChannelType.EMAIL, NotificationChannelType.BOTH)

    @property
    def includes_sms(self) -> bool:
        return self in (NotificationChannelType.SMS, NotificationChannelType.BOTH)


class ObligationStatus(str, Enum):
    """Obligation state machine: scheduled -> sending -> sent | failed."""

    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ObligationStatus.SENT, ObligationStatus.FAILED)


class NotificationObligation(BaseModel):
    """One scheduled reminder for one event at one timing stage.

    Attributes:
        id: Obligation identifier
        event_id: Owning event
        channel: email, sms or both
        timing_stage: Which reminder this is
        scheduled_time: When it becomes due (UTC)
        status: Current state, only ever moves forward
        recipients_count: Recipients resolved when it was processed
        sent_count: Successful deliveries
        failed_count: Failed deliveries
        error_details: Structured error when processing raised
        updated_at: Last state change (UTC)
    """

    id: str = Field(default_factory=_new_id)
    event_id: str
    channel: NotificationChannelType = NotificationChannelType.EMAIL
    timing_stage: TimingStage
    scheduled_time: datetime
    status: ObligationStatus = ObligationStatus.SCHEDULED
    recipients_count: int = 0
    sent_count: int = 0
    failed_count: int = 0
    error_details: Optional[Dict[str, Any]] = None
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("scheduled_time", "updated_at")
    @classmethod
    def validate_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class RegistrantSource(BaseModel):
    """Send to everyone registered for the event (default)."""

    kind: Literal["registrants"] = "registrants"


class IntegrationContactSource(BaseModel):
    """Send to a curated list of contacts owned by an integration."""

    kind: Literal["integration_contacts"] = "integration_contacts"
    integration_id: str
    contact_ids: List[str] = Field(min_length=1)


RecipientSource = Annotated[
    Union[RegistrantSource, IntegrationContactSource],
    Field(discriminator="kind"),
]


class Event(BaseModel):
    """A live event as seen by the reminder pipeline.

    Stored events may carry the flat ``preferred_integration_id`` and
    ``selected_contact_ids`` fields; they are folded into ``recipient_source``
    on validation. An integration with an empty contact list means the event
    falls back to its registrants.
    """

    id: str = Field(default_factory=_new_id)
    title: str
    description: Optional[str] = None
    scheduled_start: datetime
    host_name: Optional[str] = None
    host_company: Optional[str] = None
    registration_url: Optional[str] = None
    custom_message: Optional[str] = None
    recipient_source: RecipientSource = Field(default_factory=RegistrantSource)
    notifications_sent: int = 0

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_source(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "recipient_source" in data:
            return data
        data = dict(data)
        integration_id = data.pop("preferred_integration_id", None)
        contact_ids = data.pop("selected_contact_ids", None) or []
        if integration_id and contact_ids:
            data["recipient_source"] = {
                "kind": "integration_contacts",
                "integration_id": integration_id,
                "contact_ids": list(contact_ids),
            }
        return data

    @field_validator("scheduled_start")
    @classmethod
    def validate_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ViewerProfile(BaseModel):
    """Profile attached to a registration."""

    id: str = Field(default_factory=_new_id)
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    consent_email: bool = True
    consent_sms: bool = True


class Registration(BaseModel):
    """A viewer's registration for an event."""

    id: str = Field(default_factory=_new_id)
    event_id: str
    access_token: str
    viewer: ViewerProfile


class IntegrationContact(BaseModel):
    """A contact imported through an integration. Consent is opt-in."""

    id: str = Field(default_factory=_new_id)
    integration_id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    consent_email: bool = False
    consent_sms: bool = False


class _RecipientBase(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    consent_email: bool = False
    consent_sms: bool = False


class RegistrantRecipient(_RecipientBase):
    """Recipient resolved from a registration; links carry the access token."""

    source: Literal["registrant"] = "registrant"
    registration_id: str
    access_token: str

    def watch_url(self, app_url: str, event_id: str) -> str:
        return f"{app_url}/watch/{event_id}?token={quote(self.access_token)}"

    def unsubscribe_url(self, app_url: str) -> str:
        return f"{app_url}/unsubscribe?token={quote(self.access_token)}"


class ContactRecipient(_RecipientBase):
    """Recipient resolved from an integration contact."""

    source: Literal["integration_contact"] = "integration_contact"
    contact_id: str

    def watch_url(self, app_url: str, event_id: str) -> str:
        return f"{app_url}/watch/{event_id}"

    def unsubscribe_url(self, app_url: str) -> str:
        if not self.email:
            return ""
        return f"{app_url}/unsubscribe?email={quote(self.email)}"


Recipient = Annotated[
    Union[RegistrantRecipient, ContactRecipient],
    Field(discriminator="source"),
]


class Integration(BaseModel):
    """Account-scoped third-party provider configuration.

    Credential fields are stored encrypted and only decrypted when an adapter
    is built for a dispatch.
    """

    id: str = Field(default_factory=_new_id)
    service_type: str
    service_name: str = ""
    api_key_encrypted: Optional[str] = None
    api_secret_encrypted: Optional[str] = None
    oauth_token_encrypted: Optional[str] = None
    sender_email: Optional[str] = None
    sender_phone: Optional[str] = None
    configuration: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    total_sent: int = 0
    last_used_at: Optional[datetime] = None


class IntegrationUsageLog(BaseModel):
    """Append-only record of one dispatch through an integration."""

    id: str = Field(default_factory=_new_id)
    integration_id: str
    operation_type: Literal["email", "sms"]
    recipients_count: int
    success_count: int
    failed_count: int
    estimated_cost: float = 0.0
    created_at: datetime = Field(default_factory=utc_now)


class EmailMessage(BaseModel):
    """A rendered email for one recipient."""

    to: str
    subject: str
    html_body: str
    text_body: str


class SmsMessage(BaseModel):
    """A rendered SMS for one recipient (``to`` is E.164)."""

    to: str
    body: str


@dataclass
class DeliveryOutcome:
    """Counts from one or more adapter calls.

    Attributes:
        success_count: Messages the provider accepted
        failure_count: Messages that failed
        estimated_cost: Provider cost estimate in USD
        errors: Short error messages, one per failed call
    """

    success_count: int = 0
    failure_count: int = 0
    estimated_cost: float = 0.0
    errors: List[str] = field(default_factory=list)

    @classmethod
    def all_failed(cls, count: int, error: str) -> "DeliveryOutcome":
        return cls(success_count=0, failure_count=count, errors=[error])

    def merge(self, other: "DeliveryOutcome") -> "DeliveryOutcome":
        """Accumulate another outcome into this one and return self."""
        self.success_count += other.success_count
        self.failure_count += other.failure_count
        self.estimated_cost += other.estimated_cost
        self.errors.extend(other.errors)
        return self


@dataclass
class RunSummary:
    """Result of one trigger run.

    ``processed`` counts obligations this run claimed; ``sent`` and ``failed``
    count those obligations by terminal status. ``recipients_sent`` and
    ``recipients_failed`` count individual deliveries across them.
    """

    processed: int = 0
    sent: int = 0
    failed: int = 0
    recipients_sent: int = 0
    recipients_failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "recipients_sent": self.recipients_sent,
            "recipients_failed": self.recipients_failed,
            "errors": list(self.errors),
        }
