"""Unit tests for the delivery orchestrator."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from infrastructure.notifications.adapters.base import AdapterConstructionError
from infrastructure.notifications.models import (
    NotificationChannelType,
    ObligationStatus,
    TimingStage,
)
from infrastructure.notifications.orchestrator import (
    DeliveryOrchestrator,
    ReminderConfig,
)
from infrastructure.operations import OperationResult

OBLIGATION_ID = "evt-1:1_day_before"


@pytest.fixture
def default_adapter(fake_adapter_factory):
    return fake_adapter_factory(name="default")


@pytest.fixture
def orchestrator_factory(store, reminder_config, default_adapter, immediate_sender, cipher, run_at):
    def _factory(**kwargs):
        options = {
            "store": store,
            "config": reminder_config,
            "default_adapter": default_adapter,
            "cipher": cipher,
            "batch_sender": immediate_sender,
            "clock": lambda: run_at,
        }
        options.update(kwargs)
        return DeliveryOrchestrator(**options)

    return _factory


@pytest.fixture
def seeded(store, event_factory, registration_factory, obligation_factory):
    """One event with two email registrants and a due 1-day reminder."""
    store.save_event(event_factory())
    store.save_registration(registration_factory(email="a@example.com"))
    store.save_registration(registration_factory(email="b@example.com"))
    store.save_obligations([obligation_factory()])
    return store


@pytest.mark.unit
class TestRun:
    def test_delivers_to_registrants_with_default_adapter(
        self, seeded, orchestrator_factory, default_adapter
    ):
        summary = orchestrator_factory().run()

        assert summary.to_dict() == {
            "processed": 1,
            "sent": 1,
            "failed": 0,
            "recipients_sent": 2,
            "recipients_failed": 0,
            "errors": [],
        }
        assert sorted(default_adapter.emails_sent_to) == ["a@example.com", "b@example.com"]
        obligation = seeded.get_obligation(OBLIGATION_ID)
        assert obligation.status == ObligationStatus.SENT
        assert (obligation.recipients_count, obligation.sent_count) == (2, 2)
        assert seeded.get_event("evt-1").data.notifications_sent == 2

    def test_second_run_processes_nothing(self, seeded, orchestrator_factory, default_adapter):
        orchestrator = orchestrator_factory()
        orchestrator.run()

        summary = orchestrator.run()

        assert summary.processed == 0
        assert len(default_adapter.emails_sent_to) == 2

    def test_each_recipient_gets_their_own_links(
        self, seeded, orchestrator_factory, default_adapter
    ):
        orchestrator_factory().run()

        bodies = {m.to: m.text_body for call in default_adapter.email_calls for m in call}
        assert "token=tok-reg-a%40example.com" in bodies["a@example.com"]
        assert "token=tok-reg-b%40example.com" in bodies["b@example.com"]
        subjects = {m.subject for call in default_adapter.email_calls for m in call}
        assert subjects == {"Reminder: Launch Day starts in 23 hours"}

    def test_future_obligations_wait(self, store, event_factory, obligation_factory, orchestrator_factory, run_at):
        store.save_event(event_factory())
        store.save_obligations(
            [
                obligation_factory(
                    timing_stage=TimingStage.ONE_HOUR_BEFORE,
                    scheduled_time=run_at + timedelta(minutes=6),
                )
            ]
        )

        summary = orchestrator_factory().run()

        assert summary.processed == 0

    def test_lookahead_picks_up_soon_due(self, store, event_factory, obligation_factory, orchestrator_factory, run_at):
        store.save_event(event_factory())
        soon = obligation_factory(
            timing_stage=TimingStage.ONE_HOUR_BEFORE,
            scheduled_time=run_at + timedelta(minutes=4),
        )
        store.save_obligations([soon])

        summary = orchestrator_factory().run()

        assert summary.processed == 1
        assert store.get_obligation(soon.id).status == ObligationStatus.SENT

    def test_zero_recipients_is_sent(self, store, event_factory, obligation_factory, orchestrator_factory):
        store.save_event(event_factory())
        store.save_obligations([obligation_factory()])

        summary = orchestrator_factory().run()

        assert summary.to_dict() == {
            "processed": 1,
            "sent": 1,
            "failed": 0,
            "recipients_sent": 0,
            "recipients_failed": 0,
            "errors": [],
        }
        obligation = store.get_obligation(OBLIGATION_ID)
        assert obligation.status == ObligationStatus.SENT
        assert obligation.recipients_count == 0

    def test_consent_filtered_recipients_are_not_failures(
        self, store, event_factory, registration_factory, obligation_factory, orchestrator_factory, default_adapter
    ):
        store.save_event(event_factory())
        store.save_registration(registration_factory(consent_email=False))
        store.save_obligations([obligation_factory()])

        summary = orchestrator_factory().run()

        assert (summary.sent, summary.failed) == (1, 0)
        assert (summary.recipients_sent, summary.recipients_failed) == (0, 0)
        assert default_adapter.email_calls == []
        assert store.get_obligation(OBLIGATION_ID).status == ObligationStatus.SENT

    def test_fetch_failure_is_reported(self, orchestrator_factory):
        failing_store = MagicMock()
        failing_store.fetch_due.return_value = OperationResult.transient_error("table offline")

        summary = orchestrator_factory(store=failing_store).run()

        assert summary.processed == 0
        assert summary.errors == ["Failed to fetch due notifications: table offline"]


@pytest.mark.unit
class TestDeliveryFailures:
    def test_partial_failure_is_sent(self, seeded, orchestrator_factory, fake_adapter_factory):
        adapter = fake_adapter_factory(failing=["b@example.com"])

        summary = orchestrator_factory(default_adapter=adapter).run()

        assert (summary.sent, summary.failed) == (1, 0)
        assert (summary.recipients_sent, summary.recipients_failed) == (1, 1)
        assert summary.errors == []
        obligation = seeded.get_obligation(OBLIGATION_ID)
        assert obligation.status == ObligationStatus.SENT
        assert obligation.failed_count == 1

    def test_total_failure_is_failed(self, seeded, orchestrator_factory, fake_adapter_factory):
        adapter = fake_adapter_factory(failing=["a@example.com", "b@example.com"])

        summary = orchestrator_factory(default_adapter=adapter).run()

        assert (summary.sent, summary.failed) == (0, 1)
        assert (summary.recipients_sent, summary.recipients_failed) == (0, 2)
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith(f"Obligation {OBLIGATION_ID}: rejected ")
        assert seeded.get_obligation(OBLIGATION_ID).status == ObligationStatus.FAILED
        assert seeded.get_event("evt-1").data.notifications_sent == 0

    def test_raising_adapter_counts_batch_failed(self, seeded, orchestrator_factory, fake_adapter_factory):
        adapter = fake_adapter_factory(raise_on_call=RuntimeError("socket closed"))

        summary = orchestrator_factory(default_adapter=adapter).run()

        assert (summary.processed, summary.failed) == (1, 1)
        assert summary.recipients_failed == 2
        assert seeded.get_obligation(OBLIGATION_ID).status == ObligationStatus.FAILED

    def test_summary_counts_obligations_not_recipients(
        self, seeded, obligation_factory, orchestrator_factory, fake_adapter_factory
    ):
        seeded.save_obligations(
            [obligation_factory(timing_stage=TimingStage.THREE_DAYS_BEFORE)]
        )
        adapter = fake_adapter_factory(failing=["b@example.com"])

        summary = orchestrator_factory(default_adapter=adapter).run()

        assert (summary.processed, summary.sent, summary.failed) == (2, 2, 0)
        assert (summary.recipients_sent, summary.recipients_failed) == (2, 2)

    def test_missing_event_fails_obligation_and_continues(
        self, store, event_factory, registration_factory, obligation_factory, orchestrator_factory
    ):
        orphan = obligation_factory(event_id="gone")
        store.save_event(event_factory())
        store.save_registration(registration_factory())
        healthy = obligation_factory()
        store.save_obligations([orphan, healthy])

        summary = orchestrator_factory().run()

        assert summary.processed == 2
        assert summary.sent == 1
        assert summary.failed == 1
        assert summary.errors == [
            "Obligation gone:1_day_before: Event gone could not be loaded: Event gone not found"
        ]
        failed = store.get_obligation(orphan.id)
        assert failed.status == ObligationStatus.FAILED
        assert failed.error_details["error_code"] == "NOT_FOUND"
        assert store.get_obligation(healthy.id).status == ObligationStatus.SENT

    def test_summary_errors_are_capped(
        self, store, event_factory, registration_factory, obligation_factory, orchestrator_factory, reminder_config, fake_adapter_factory
    ):
        store.save_event(event_factory())
        store.save_registration(registration_factory())
        store.save_obligations(
            [
                obligation_factory(),
                obligation_factory(timing_stage=TimingStage.THREE_DAYS_BEFORE),
            ]
        )
        config = ReminderConfig(app_url=reminder_config.app_url, max_summary_errors=1)
        adapter = fake_adapter_factory(failing=["viewer@example.com"])

        summary = orchestrator_factory(config=config, default_adapter=adapter).run()

        assert summary.processed == 2
        assert summary.failed == 2
        assert summary.recipients_failed == 2
        assert len(summary.errors) == 1


@pytest.mark.unit
class TestChannels:
    def test_both_channels_deliver_sms_to_normalized_phone(
        self, store, event_factory, registration_factory, obligation_factory, orchestrator_factory, default_adapter
    ):
        store.save_event(event_factory())
        store.save_registration(
            registration_factory(email="a@example.com", phone="(555) 123-4567")
        )
        store.save_obligations([obligation_factory(channel=NotificationChannelType.BOTH)])

        summary = orchestrator_factory().run()

        assert (summary.sent, summary.recipients_sent) == (1, 2)
        assert default_adapter.emails_sent_to == ["a@example.com"]
        assert default_adapter.sms_sent_to == ["+15551234567"]
        body = default_adapter.sms_calls[0][0].body
        assert body.startswith("⏰ Launch Day starts in 23 hours! Join: https://app.example.com/watch/evt-1?token=")

    def test_sms_only_skips_email(
        self, store, event_factory, registration_factory, obligation_factory, orchestrator_factory, default_adapter
    ):
        store.save_event(event_factory())
        store.save_registration(registration_factory(phone="5551234567"))
        store.save_obligations([obligation_factory(channel=NotificationChannelType.SMS)])

        orchestrator_factory().run()

        assert default_adapter.email_calls == []
        assert default_adapter.sms_sent_to == ["+15551234567"]


@pytest.mark.unit
class TestIntegrations:
    @pytest.fixture
    def contact_event(self, store, event_factory, contact_factory, integration_factory, obligation_factory):
        store.save_integration(integration_factory())
        store.save_contact(contact_factory(id="c1", email="one@example.com"))
        store.save_contact(contact_factory(id="c2", email="two@example.com"))
        store.save_event(
            event_factory(preferred_integration_id="int-1", selected_contact_ids=["c1", "c2"])
        )
        store.save_obligations([obligation_factory()])
        return store

    def test_uses_integration_adapter_and_logs_usage(
        self, contact_event, orchestrator_factory, fake_adapter_factory, default_adapter, run_at
    ):
        integration_adapter = fake_adapter_factory(name="sendgrid", cost_per_message=0.01)
        factory = MagicMock(return_value=integration_adapter)

        summary = orchestrator_factory(adapter_factory=factory).run()

        assert (summary.sent, summary.recipients_sent) == (1, 2)
        assert default_adapter.email_calls == []
        assert sorted(integration_adapter.emails_sent_to) == ["one@example.com", "two@example.com"]
        args, kwargs = factory.call_args
        assert args[0] == "sendgrid"
        assert args[1]["api_key"] == "SG.test-key"
        assert args[1]["sender_email"] == "events@example.com"
        assert kwargs == {"configuration": {}, "timeout": 5}

        (log,) = contact_event.usage_logs("int-1")
        assert log.operation_type == "email"
        assert (log.recipients_count, log.success_count, log.failed_count) == (2, 2, 0)
        assert log.estimated_cost == pytest.approx(0.02)
        integration = contact_event.get_integration("int-1")
        assert integration.total_sent == 2
        assert integration.last_used_at == run_at

    def test_no_usage_log_when_nothing_delivered(
        self, contact_event, orchestrator_factory, fake_adapter_factory
    ):
        integration_adapter = fake_adapter_factory(
            failing=["one@example.com", "two@example.com"]
        )

        orchestrator_factory(adapter_factory=MagicMock(return_value=integration_adapter)).run()

        assert contact_event.usage_logs("int-1") == []

    def test_construction_failure_fails_closed(
        self, contact_event, orchestrator_factory, default_adapter
    ):
        factory = MagicMock(
            side_effect=AdapterConstructionError(
                "Invalid sendgrid credentials", service_type="sendgrid", error_code="INVALID_CREDENTIALS"
            )
        )

        summary = orchestrator_factory(adapter_factory=factory).run()

        assert default_adapter.email_calls == []
        assert (summary.processed, summary.sent, summary.failed) == (1, 0, 1)
        assert summary.recipients_failed == 2
        assert summary.errors == [
            f"Obligation {OBLIGATION_ID}: adapter construction failed: Invalid sendgrid credentials"
        ]
        obligation = contact_event.get_obligation(OBLIGATION_ID)
        assert obligation.status == ObligationStatus.FAILED
        assert obligation.failed_count == 2
        assert obligation.error_details == {
            "error": "Invalid sendgrid credentials",
            "error_code": "ADAPTER_CONSTRUCTION_FAILED",
        }
        assert contact_event.usage_logs() == []

    def test_missing_cipher_fails_closed(self, contact_event, orchestrator_factory, default_adapter):
        factory = MagicMock()

        summary = orchestrator_factory(cipher=None, adapter_factory=factory).run()

        factory.assert_not_called()
        assert default_adapter.email_calls == []
        assert (summary.failed, summary.recipients_failed) == (1, 2)
        assert "ENCRYPTION_KEY is not configured" in summary.errors[0]

    def test_inactive_integration_falls_back_to_registrants(
        self, contact_event, registration_factory, orchestrator_factory, default_adapter
    ):
        integration = contact_event.get_integration("int-1")
        integration.is_active = False
        contact_event.save_integration(integration)
        contact_event.save_registration(registration_factory(email="viewer@example.com"))
        factory = MagicMock()

        summary = orchestrator_factory(adapter_factory=factory).run()

        factory.assert_not_called()
        assert (summary.sent, summary.recipients_sent) == (1, 1)
        assert default_adapter.emails_sent_to == ["viewer@example.com"]


@pytest.mark.unit
class TestReminderConfig:
    def test_strips_trailing_slash(self):
        assert ReminderConfig(app_url="https://app.example.com/").app_url == "https://app.example.com"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"app_url": ""},
            {"lookahead": timedelta(minutes=-1)},
            {"email_batch_size": 0},
            {"sms_delay": -1},
            {"adapter_timeout": 0},
            {"max_summary_errors": 0},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        values = {"app_url": "https://app.example.com"}
        values.update(overrides)

        with pytest.raises(ValueError):
            ReminderConfig(**values)
