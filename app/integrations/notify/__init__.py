"""GC Notify module used by the default delivery provider."""

from .client import (
    epoch_seconds,
    create_jwt_token,
    create_authorization_header,
    post_event,
    send_email_notification,
    send_sms_notification,
)

__all__ = [
    "epoch_seconds",
    "create_jwt_token",
    "create_authorization_header",
    "post_event",
    "send_email_notification",
    "send_sms_notification",
]
