"""Email and SMS templates for event reminders.

Rendering is pure substitution: the timing stage picks the template and a
``TemplateVariables`` instance fills it. Missing optional values render as an
empty string; unknown placeholders never leak into the output.
"""

import html
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, field_validator

from infrastructure.notifications.models import (
    Event,
    RegistrantRecipient,
    ContactRecipient,
    TimingStage,
    ensure_utc,
)

DEFAULT_HOST_NAME = "Your Host"


class TemplateVariables(BaseModel):
    """Values available to every template."""

    first_name: str = ""
    last_name: str = ""
    event_title: str = ""
    event_description: str = ""
    event_date: str = ""
    event_time: str = ""
    event_datetime: str = ""
    time_until_event: str = ""
    host_name: str = ""
    host_company: str = ""
    registration_url: str = ""
    watch_url: str = ""
    unsubscribe_url: str = ""
    custom_message: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def as_mapping(self, escape: bool = False) -> "_Placeholders":
        values = self.model_dump()
        values["host_company"] = values["host_company"] or values["host_name"]
        if escape:
            values = {key: html.escape(value) for key, value in values.items()}
        return _Placeholders(values)


class _Placeholders(dict):
    def __missing__(self, key: str) -> str:
        return ""


class RenderedEmail(BaseModel):
    subject: str
    html_body: str
    text_body: str


def _plural(count: int, unit: str) -> str:
    return f"in {count} {unit}{'' if count == 1 else 's'}"


def time_until_event(remaining: Union[timedelta, float]) -> str:
    """Human-readable time until the event starts.

    Floors to whole weeks (7 days or more), days, hours or minutes, falling
    back to ``"now"`` under one minute.

    Args:
        remaining: Time left, as a timedelta or in milliseconds.

    Returns:
        e.g. ``"in 1 hour"``, ``"in 2 days"``, ``"now"``.
    """
    if isinstance(remaining, timedelta):
        seconds = remaining.total_seconds()
    else:
        seconds = remaining / 1000

    days = int(seconds // 86400)
    hours = int(seconds // 3600)
    minutes = int(seconds // 60)

    if days >= 7:
        return _plural(days // 7, "week")
    if days >= 1:
        return _plural(days, "day")
    if hours >= 1:
        return _plural(hours, "hour")
    if minutes >= 1:
        return _plural(minutes, "minute")
    return "now"


def _clock(value: datetime) -> str:
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {meridiem}"


def format_event_date(value: datetime) -> str:
    """e.g. ``Friday, October 25, 2024``."""
    value = ensure_utc(value)
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def format_event_time(value: datetime) -> str:
    """e.g. ``2:00 PM UTC``."""
    return f"{_clock(ensure_utc(value))} UTC"


def format_event_datetime(value: datetime) -> str:
    """e.g. ``Friday, October 25, 2024 at 2:00 PM UTC``."""
    return f"{format_event_date(value)} at {format_event_time(value)}"


def variables_for(
    event: Event,
    recipient: Union[RegistrantRecipient, ContactRecipient],
    app_url: str,
    now: datetime,
) -> TemplateVariables:
    """Build the template variables for one recipient of an event."""
    start = event.scheduled_start
    return TemplateVariables(
        first_name=recipient.first_name,
        last_name=recipient.last_name,
        event_title=event.title,
        event_description=event.description,
        event_date=format_event_date(start),
        event_time=format_event_time(start),
        event_datetime=format_event_datetime(start),
        time_until_event=time_until_event(start - ensure_utc(now)),
        host_name=event.host_name or DEFAULT_HOST_NAME,
        host_company=event.host_company,
        registration_url=event.registration_url or f"{app_url}/register/{event.id}",
        watch_url=recipient.watch_url(app_url, event.id),
        unsubscribe_url=recipient.unsubscribe_url(app_url),
        custom_message=event.custom_message,
    )


_HTML_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{subject}</title></head>
<body>
<h1>{heading}</h1>
<p>Hi {first_name},</p>
{lead}
<h2>{event_title}</h2>
<p>{event_description}</p>
<p>Date: <strong>{event_date}</strong><br>Time: <strong>{event_time}</strong><br>Host: <strong>{host_name}</strong> ({host_company})</p>
{custom_message_block}<p><a href="{watch_url}">{cta}</a></p>
<p><small><a href="{unsubscribe_url}">Unsubscribe</a></small></p>
</body>
</html>
"""

_TEXT_LAYOUT = """{heading}

Hi {first_name},

{lead}

{event_title}
{event_description}

Date: {event_date}
Time: {event_time}
Host: {host_name}
{custom_message_block}
{cta}: {watch_url}

Unsubscribe: {unsubscribe_url}
"""

_EMAIL_TEMPLATES: Dict[str, Dict[str, str]] = {
    "confirmation": {
        "subject": "You're registered for {event_title}!",
        "heading": "You're registered!",
        "lead": "You're all set for {event_title} hosted by {host_name}. "
        "We'll send you reminders as the event approaches.",
        "cta": "Watch here",
    },
    "starting_now": {
        "subject": "\U0001f534 LIVE NOW: {event_title}",
        "heading": "We're live!",
        "lead": "{event_title} with {host_name} is starting right now.",
        "cta": "Join the stream",
    },
    "reminder": {
        "subject": "Reminder: {event_title} starts {time_until_event}",
        "heading": "Starting {time_until_event}",
        "lead": "Just a reminder that {event_title} starts {time_until_event} "
        "({event_datetime}).",
        "cta": "Watch here",
    },
}

_SMS_TEMPLATES: Dict[str, str] = {
    "confirmation": "You're registered for {event_title}! {event_datetime}. "
    "Watch: {watch_url} - {host_name}",
    "starting_now": "\U0001f534 LIVE NOW: {event_title}! Watch: {watch_url}",
    "reminder": "⏰ {event_title} starts {time_until_event}! Join: {watch_url}",
}


def template_kind(stage: Union[TimingStage, str]) -> str:
    """Map a timing stage to the template family used for it."""
    stage = TimingStage(stage)
    if stage is TimingStage.IMMEDIATE:
        return "confirmation"
    if stage is TimingStage.AT_EVENT_START:
        return "starting_now"
    return "reminder"


def _fill(template: str, values: Dict[str, str]) -> str:
    return template.format_map(values)


def render_email(
    stage: Union[TimingStage, str], variables: TemplateVariables
) -> RenderedEmail:
    """Render subject, HTML body and text body for a timing stage."""
    parts = _EMAIL_TEMPLATES[template_kind(stage)]
    text_values = variables.as_mapping()
    html_values = variables.as_mapping(escape=True)

    text_fields = {name: _fill(part, text_values) for name, part in parts.items()}
    html_fields = {name: _fill(part, html_values) for name, part in parts.items()}

    custom_message: Optional[str] = variables.custom_message or None
    text_values["custom_message_block"] = (
        f"\n{custom_message}\n" if custom_message else ""
    )
    html_values["custom_message_block"] = (
        f"<p><em>{html.escape(custom_message)}</em></p>\n" if custom_message else ""
    )

    return RenderedEmail(
        subject=text_fields["subject"],
        html_body=_fill(_HTML_LAYOUT, _Placeholders(html_values, **html_fields)),
        text_body=_fill(_TEXT_LAYOUT, _Placeholders(text_values, **text_fields)),
    )


def render_sms(stage: Union[TimingStage, str], variables: TemplateVariables) -> str:
    """Render the SMS body for a timing stage."""
    return _fill(_SMS_TEMPLATES[template_kind(stage)], variables.as_mapping())
