"""GC Notify client."""

import calendar
import json
import time
from typing import Any, Dict, Optional, Tuple

import jwt
import requests

from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.logging import get_module_logger

logger = get_module_logger()

DEFAULT_TIMEOUT = 30


# generate the epoch seconds for the jwt token
def epoch_seconds():
    return calendar.timegm(time.gmtime())


def create_jwt_token(secret, client_id):
    """
    Generate a JWT Token for the Notify API

    Tokens have a header consisting of:
    {
        "typ": "JWT",
        "alg": "HS256"
    }

    Claims are:
    iss: service id of the client
    iat: epoch seconds for the token (UTC)

    Returns a JWT token for this request
    """
    if not secret:
        logger.error("jwt_token_creation_failed", error="Missing secret key")
        raise ValueError("Missing secret key")
    if not client_id:
        logger.error("jwt_token_creation_failed", error="Missing client id")
        raise ValueError("Missing client id")

    headers = {"typ": "JWT", "alg": "HS256"}
    claims = {"iss": client_id, "iat": epoch_seconds()}
    return jwt.encode(payload=claims, key=secret, headers=headers)


def create_authorization_header(notify: NotifySettings) -> Tuple[str, str]:
    """Create the authorization header for the Notify API"""
    if not notify.NOTIFY_SERVICE_ID:
        error = "NOTIFY_SERVICE_ID is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)
    if not notify.NOTIFY_API_SECRET:
        error = "NOTIFY_API_SECRET is missing"
        logger.error("authorization_header_creation_failed", error=error)
        raise ValueError(error)

    token = create_jwt_token(
        secret=notify.NOTIFY_API_SECRET, client_id=notify.NOTIFY_SERVICE_ID
    )
    return "Authorization", "Bearer {}".format(token)


def post_event(
    notify: NotifySettings,
    path: str,
    payload: Dict[str, Any],
    timeout: Optional[float] = None,
) -> requests.Response:
    """Post a payload to a Notify API path, e.g. ``/v2/notifications/email``"""
    header_key, header_value = create_authorization_header(notify)
    header = {header_key: header_value, "Content-Type": "application/json"}
    url = f"{notify.NOTIFY_API_URL.rstrip('/')}{path}"

    return requests.post(
        url,
        data=json.dumps(payload),
        headers=header,
        timeout=timeout or DEFAULT_TIMEOUT,
    )


def send_email_notification(
    notify: NotifySettings,
    email_address: str,
    personalisation: Dict[str, Any],
    reference: Optional[str] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    """Send one email through the generic email template"""
    payload: Dict[str, Any] = {
        "email_address": email_address,
        "template_id": notify.NOTIFY_EMAIL_TEMPLATE_ID,
        "personalisation": personalisation,
    }
    if reference:
        payload["reference"] = reference
    return post_event(notify, "/v2/notifications/email", payload, timeout=timeout)


def send_sms_notification(
    notify: NotifySettings,
    phone_number: str,
    personalisation: Dict[str, Any],
    reference: Optional[str] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    """Send one SMS through the generic SMS template"""
    payload: Dict[str, Any] = {
        "phone_number": phone_number,
        "template_id": notify.NOTIFY_SMS_TEMPLATE_ID,
        "personalisation": personalisation,
    }
    if reference:
        payload["reference"] = reference
    return post_event(notify, "/v2/notifications/sms", payload, timeout=timeout)
