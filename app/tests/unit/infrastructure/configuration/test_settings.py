"""Unit tests for infrastructure.configuration.settings module.

Tests cover:
- ReminderSettings defaults, environment overrides and validation
- Server, security and storage settings
- Settings aggregation and production detection
"""

import pytest
from pydantic import ValidationError

from infrastructure.configuration import ReminderSettings, Settings
from infrastructure.configuration.infrastructure import (
    SecuritySettings,
    ServerSettings,
    StorageSettings,
)
from infrastructure.configuration.integrations import AwsSettings, NotifySettings


@pytest.mark.unit
class TestReminderSettings:
    """Test suite for ReminderSettings configuration."""

    def test_defaults(self):
        reminders = ReminderSettings()

        assert reminders.lookahead_seconds == 300
        assert reminders.email_batch_size == 100
        assert reminders.email_batch_delay_seconds == 1.0
        assert reminders.sms_delay_seconds == 0.1
        assert reminders.adapter_timeout_seconds == 30.0
        assert reminders.max_summary_errors == 50
        assert reminders.scheduler_enabled is False
        assert reminders.scheduler_interval_seconds == 60

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("REMINDERS_LOOKAHEAD_SECONDS", "600")
        monkeypatch.setenv("REMINDERS_EMAIL_BATCH_SIZE", "25")
        monkeypatch.setenv("REMINDERS_SCHEDULER_ENABLED", "true")

        reminders = ReminderSettings()

        assert reminders.lookahead_seconds == 600
        assert reminders.email_batch_size == 25
        assert reminders.scheduler_enabled is True

    def test_field_names_accepted(self):
        reminders = ReminderSettings(email_batch_size=10, sms_delay_seconds=0)

        assert reminders.email_batch_size == 10
        assert reminders.sms_delay_seconds == 0

    @pytest.mark.parametrize(
        "field", ["email_batch_size", "max_summary_errors", "scheduler_interval_seconds"]
    )
    def test_counts_must_be_positive(self, field):
        with pytest.raises(ValidationError, match="must be at least 1"):
            ReminderSettings(**{field: 0})

    @pytest.mark.parametrize(
        "field",
        [
            "lookahead_seconds",
            "email_batch_delay_seconds",
            "sms_delay_seconds",
        ],
    )
    def test_durations_not_negative(self, field):
        with pytest.raises(ValidationError, match="must not be negative"):
            ReminderSettings(**{field: -1})

    @pytest.mark.parametrize("value", [0, -1])
    def test_adapter_timeout_must_be_positive(self, value):
        with pytest.raises(ValidationError, match="must be greater than 0"):
            ReminderSettings(adapter_timeout_seconds=value)


@pytest.mark.unit
class TestInfrastructureSettings:
    def test_app_url_trailing_slash_is_stripped(self):
        assert ServerSettings(APP_URL="https://events.example.com/").APP_URL == (
            "https://events.example.com"
        )

    def test_cron_secret_from_environment(self, monkeypatch):
        monkeypatch.setenv("CRON_SECRET", "s3cret")

        assert ServerSettings().CRON_SECRET == "s3cret"

    def test_no_default_secrets(self):
        assert ServerSettings().CRON_SECRET is None
        assert SecuritySettings().ENCRYPTION_KEY is None

    def test_table_names_use_prefix(self):
        storage = StorageSettings(table_prefix="staging-")

        assert storage.backend == "memory"
        assert storage.table_name("event-notifications") == "staging-event-notifications"


@pytest.mark.unit
class TestSettings:
    def test_instantiates_every_section(self):
        settings = Settings()

        assert isinstance(settings.aws, AwsSettings)
        assert isinstance(settings.notify, NotifySettings)
        assert isinstance(settings.reminders, ReminderSettings)
        assert isinstance(settings.server, ServerSettings)
        assert isinstance(settings.security, SecuritySettings)
        assert isinstance(settings.storage, StorageSettings)

    def test_passed_sections_are_kept(self):
        reminders = ReminderSettings(email_batch_size=5)

        settings = Settings(reminders=reminders)

        assert settings.reminders.email_batch_size == 5

    def test_empty_prefix_is_production(self):
        assert Settings().is_production is True
        assert Settings(PREFIX="dev-").is_production is False

    def test_aws_defaults(self):
        aws = AwsSettings()

        assert aws.AWS_REGION == "ca-central-1"
        assert aws.ENDPOINT_URL is None
        assert "ThrottlingException" in aws.THROTTLING_ERRS
