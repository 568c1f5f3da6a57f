"""Typed credential bundles, one per integration service type.

Decrypted integration fields arrive as a flat mapping
(``api_key``, ``api_secret``, ``oauth_token``, ``sender_email``,
``sender_phone``). ``build_credential_bundle`` validates them into the bundle
for the integration's service type, so adapters receive exactly the fields
they need.
"""

import re
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    EmailStr,
    Field,
    SecretStr,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from infrastructure.notifications.adapters.base import AdapterConstructionError

E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")

SUPPORTED_SERVICE_TYPES = (
    "sendgrid",
    "mailgun",
    "mailchimp",
    "brevo",
    "twilio",
    "whatsapp_business",
    "telegram",
)
PLANNED_SERVICE_TYPES = ("custom_smtp",)


def _require_e164(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not E164_PATTERN.match(value):
        raise ValueError("sender phone must be in E.164 format, e.g. +15551234567")
    return value


class SendGridCredentials(BaseModel):
    service_type: Literal["sendgrid"]
    api_key: SecretStr
    sender_email: EmailStr
    sender_name: Optional[str] = None

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().startswith("SG."):
            raise ValueError("SendGrid API keys start with 'SG.'")
        return v


class MailgunCredentials(BaseModel):
    service_type: Literal["mailgun"]
    api_key: SecretStr
    sender_email: EmailStr
    sender_name: Optional[str] = None


class MailchimpCredentials(BaseModel):
    """Mailchimp Transactional API key and verified sender."""

    service_type: Literal["mailchimp"]
    api_key: SecretStr
    sender_email: EmailStr
    sender_name: Optional[str] = None


class TwilioCredentials(BaseModel):
    """Twilio stores the account SID as the API key and the auth token as the secret."""

    service_type: Literal["twilio"]
    account_sid: str = Field(validation_alias=AliasChoices("account_sid", "api_key"))
    auth_token: SecretStr = Field(
        validation_alias=AliasChoices("auth_token", "api_secret")
    )
    sender_phone: str

    @field_validator("account_sid")
    @classmethod
    def validate_account_sid(cls, v: str) -> str:
        if not v.startswith("AC"):
            raise ValueError("Twilio account SIDs start with 'AC'")
        return v

    @field_validator("sender_phone")
    @classmethod
    def validate_sender_phone(cls, v: str) -> str:
        return _require_e164(v)


class BrevoCredentials(BaseModel):
    service_type: Literal["brevo"]
    api_key: SecretStr
    sender_email: EmailStr
    sender_name: Optional[str] = None
    sender_phone: Optional[str] = None

    @field_validator("sender_phone")
    @classmethod
    def validate_sender_phone(cls, v: Optional[str]) -> Optional[str]:
        return _require_e164(v)


class WhatsAppCredentials(BaseModel):
    """WhatsApp Cloud API access token. The phone number id is configuration."""

    service_type: Literal["whatsapp_business"]
    access_token: SecretStr = Field(
        validation_alias=AliasChoices("access_token", "api_key")
    )
    sender_phone: Optional[str] = None

    @field_validator("sender_phone")
    @classmethod
    def validate_sender_phone(cls, v: Optional[str]) -> Optional[str]:
        return _require_e164(v)


class TelegramCredentials(BaseModel):
    service_type: Literal["telegram"]
    bot_token: SecretStr = Field(validation_alias=AliasChoices("bot_token", "api_key"))

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: SecretStr) -> SecretStr:
        if ":" not in v.get_secret_value():
            raise ValueError("Telegram bot tokens look like '<bot_id>:<token>'")
        return v


CredentialBundle = Annotated[
    Union[
        SendGridCredentials,
        MailgunCredentials,
        MailchimpCredentials,
        BrevoCredentials,
        TwilioCredentials,
        WhatsAppCredentials,
        TelegramCredentials,
    ],
    Field(discriminator="service_type"),
]

_bundle_adapter: TypeAdapter = TypeAdapter(CredentialBundle)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part)
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def build_credential_bundle(
    service_type: str,
    credentials: Mapping[str, Optional[str]],
    configuration: Optional[Mapping[str, Any]] = None,
) -> CredentialBundle:
    """Validate decrypted credentials into the bundle for ``service_type``.

    Args:
        service_type: Integration service type, e.g. ``"sendgrid"``
        credentials: Decrypted credential fields
        configuration: Integration configuration (supplies ``sender_name``)

    Returns:
        The validated credential bundle

    Raises:
        AdapterConstructionError: If the type is unsupported or a field is
            missing or malformed
    """
    if service_type in PLANNED_SERVICE_TYPES:
        raise AdapterConstructionError(
            f"{service_type} integration not yet implemented",
            service_type=service_type,
            error_code="ADAPTER_NOT_IMPLEMENTED",
        )
    if service_type not in SUPPORTED_SERVICE_TYPES:
        raise AdapterConstructionError(
            f"Unsupported integration type: {service_type}",
            service_type=service_type,
            error_code="UNSUPPORTED_INTEGRATION",
        )

    payload: Dict[str, Any] = {
        key: value for key, value in credentials.items() if value is not None
    }
    sender_name = (configuration or {}).get("sender_name")
    if sender_name:
        payload["sender_name"] = sender_name
    payload["service_type"] = service_type

    try:
        return _bundle_adapter.validate_python(payload)
    except ValidationError as e:
        raise AdapterConstructionError(
            f"Invalid {service_type} credentials: {_first_error(e)}",
            service_type=service_type,
            error_code="INVALID_CREDENTIALS",
        ) from e
