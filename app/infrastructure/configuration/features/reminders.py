"""Reminder pipeline feature settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import FeatureSettings


class ReminderSettings(FeatureSettings):
    """Tuning for due selection, batching and provider throttling.

    Environment Variables:
        REMINDERS_LOOKAHEAD_SECONDS: Window past "now" still considered due (default: 300)
        REMINDERS_EMAIL_BATCH_SIZE: Recipients per email batch (default: 100)
        REMINDERS_EMAIL_BATCH_DELAY_SECONDS: Pause between email batches (default: 1.0)
        REMINDERS_SMS_DELAY_SECONDS: Pause between SMS messages (default: 0.1)
        REMINDERS_ADAPTER_TIMEOUT_SECONDS: Upper bound on one adapter call (default: 30)
        REMINDERS_MAX_SUMMARY_ERRORS: Error messages kept in a run summary (default: 50)
        REMINDERS_SCHEDULER_ENABLED: Run the pipeline from an in-process scheduler
        REMINDERS_SCHEDULER_INTERVAL_SECONDS: Scheduler period (default: 60)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        batch_size = settings.reminders.email_batch_size
        ```
    """

    lookahead_seconds: int = Field(
        default=300,
        alias="REMINDERS_LOOKAHEAD_SECONDS",
        description="Obligations due within this many seconds are picked up",
    )
    email_batch_size: int = Field(
        default=100,
        alias="REMINDERS_EMAIL_BATCH_SIZE",
        description="Maximum recipients per email batch",
    )
    email_batch_delay_seconds: float = Field(
        default=1.0,
        alias="REMINDERS_EMAIL_BATCH_DELAY_SECONDS",
        description="Delay between consecutive email batches",
    )
    sms_delay_seconds: float = Field(
        default=0.1,
        alias="REMINDERS_SMS_DELAY_SECONDS",
        description="Delay between consecutive SMS messages",
    )
    adapter_timeout_seconds: float = Field(
        default=30.0,
        alias="REMINDERS_ADAPTER_TIMEOUT_SECONDS",
        description="Per-request timeout and per-call deadline for delivery adapters",
    )
    max_summary_errors: int = Field(
        default=50,
        alias="REMINDERS_MAX_SUMMARY_ERRORS",
        description="Maximum number of error messages returned in a run summary",
    )
    scheduler_enabled: bool = Field(
        default=False,
        alias="REMINDERS_SCHEDULER_ENABLED",
        description="Start the in-process scheduler thread on startup",
    )
    scheduler_interval_seconds: int = Field(
        default=60,
        alias="REMINDERS_SCHEDULER_INTERVAL_SECONDS",
        description="How often the in-process scheduler triggers a run",
    )

    @field_validator("email_batch_size", "max_summary_errors", "scheduler_interval_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Counts and periods must be at least 1."""
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator(
        "lookahead_seconds",
        "email_batch_delay_seconds",
        "sms_delay_seconds",
    )
    @classmethod
    def validate_not_negative(cls, v):
        """Durations cannot be negative."""
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("adapter_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v
