"""Recipient resolution and per-channel filtering.

The resolver decides which source an event's reminders go to (registrants
or an integration's curated contacts) and normalizes both into the
``Recipient`` union. Channel filters then apply consent and address checks.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TYPE_CHECKING, Union

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    ContactRecipient,
    Event,
    Integration,
    IntegrationContact,
    IntegrationContactSource,
    RegistrantRecipient,
    Registration,
)
from infrastructure.operations import OperationResult, OperationStatus

if TYPE_CHECKING:
    from infrastructure.notifications.store import NotificationStore

logger = get_module_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DEFAULT_COUNTRY_CODE = "1"

RecipientType = Union[RegistrantRecipient, ContactRecipient]

SOURCE_REGISTRANTS = "registrants"
SOURCE_INTEGRATION_CONTACTS = "integration_contacts"


class RecipientResolutionError(Exception):
    """Raised when recipients cannot be resolved because the store failed."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.error_code = error_code or "RECIPIENT_RESOLUTION_FAILED"
        super().__init__(message)


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Normalize a phone number to E.164.

    Numbers with 10 to 15 digits are accepted. A bare 10-digit number is
    given the default country code.

    Returns:
        The E.164 string, or None if the number cannot be normalized.
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if not 10 <= len(digits) <= 15:
        return None
    if len(digits) == 10:
        return f"+{DEFAULT_COUNTRY_CODE}{digits}"
    return f"+{digits}"


def email_recipients(recipients: Sequence[RecipientType]) -> List[RecipientType]:
    """Recipients who consented to email and have a valid address."""
    return [r for r in recipients if r.consent_email and is_valid_email(r.email)]


def sms_recipients(recipients: Sequence[RecipientType]) -> List[RecipientType]:
    """Recipients who consented to SMS and have a normalizable phone."""
    return [r for r in recipients if r.consent_sms and normalize_phone(r.phone)]


def from_registration(registration: Registration) -> RegistrantRecipient:
    viewer = registration.viewer
    return RegistrantRecipient(
        registration_id=registration.id,
        access_token=registration.access_token,
        first_name=viewer.first_name,
        last_name=viewer.last_name,
        email=viewer.email,
        phone=viewer.phone,
        consent_email=viewer.consent_email,
        consent_sms=viewer.consent_sms,
    )


def from_contact(contact: IntegrationContact) -> ContactRecipient:
    return ContactRecipient(
        contact_id=contact.id,
        first_name=contact.first_name,
        last_name=contact.last_name,
        email=contact.email,
        phone=contact.phone,
        consent_email=contact.consent_email,
        consent_sms=contact.consent_sms,
    )


@dataclass
class ResolvedRecipients:
    """Recipients for one event and where they came from.

    ``integration`` is set only when the recipients are integration contacts;
    it is the integration whose adapter must deliver to them.
    """

    source: str
    recipients: List[RecipientType] = field(default_factory=list)
    integration: Optional[Integration] = None


class RecipientResolver:
    """Resolve the recipient list for an event.

    Integration contacts are used only when the event names a non-empty
    contact list and its bound integration exists and is active; contacts
    are looked up scoped to that integration. Every other case falls back to
    the event's registrants.
    """

    def __init__(self, store: "NotificationStore"):
        self._store = store

    def resolve(self, event: Event) -> OperationResult:
        """Resolve recipients for an event.

        Returns:
            OperationResult with a ``ResolvedRecipients`` payload. Zero
            recipients is a success with an empty list; store failures are
            returned as error results.
        """
        source = event.recipient_source
        if isinstance(source, IntegrationContactSource):
            integration_result = self._store.get_active_integration(
                source.integration_id
            )
            if integration_result.is_success:
                return self._resolve_contacts(source, integration_result.data)
            if integration_result.status != OperationStatus.NOT_FOUND:
                return integration_result
            logger.warning(
                "integration_inactive_using_registrants",
                event_id=event.id,
                integration_id=source.integration_id,
            )

        registrations = self._store.list_registrations(event.id)
        if not registrations.is_success:
            return registrations

        recipients = [from_registration(r) for r in registrations.data or []]
        logger.info(
            "recipients_resolved",
            event_id=event.id,
            source=SOURCE_REGISTRANTS,
            count=len(recipients),
        )
        return OperationResult.success(
            data=ResolvedRecipients(source=SOURCE_REGISTRANTS, recipients=recipients)
        )

    def _resolve_contacts(
        self, source: IntegrationContactSource, integration: Integration
    ) -> OperationResult:
        contacts = self._store.list_contacts(integration.id, source.contact_ids)
        if not contacts.is_success:
            return contacts

        recipients = [
            from_contact(c)
            for c in contacts.data or []
            if c.integration_id == integration.id
        ]
        logger.info(
            "recipients_resolved",
            integration_id=integration.id,
            source=SOURCE_INTEGRATION_CONTACTS,
            requested=len(source.contact_ids),
            count=len(recipients),
        )
        return OperationResult.success(
            data=ResolvedRecipients(
                source=SOURCE_INTEGRATION_CONTACTS,
                recipients=recipients,
                integration=integration,
            )
        )
