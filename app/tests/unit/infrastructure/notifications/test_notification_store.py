"""Unit tests for the in-memory notification store."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.notifications.models import (
    IntegrationUsageLog,
    ObligationStatus,
    TimingStage,
)
from infrastructure.operations import OperationStatus

DUE_AT = datetime(2024, 10, 24, 14, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestObligationPersistence:
    def test_save_and_list_sorted(self, store, obligation_factory):
        late = obligation_factory(
            timing_stage=TimingStage.ONE_HOUR_BEFORE,
            scheduled_time=DUE_AT + timedelta(hours=23),
        )
        early = obligation_factory()

        result = store.save_obligations([late, early])

        assert result.is_success
        listed = store.list_obligations("evt-1").data
        assert [o.id for o in listed] == [early.id, late.id]

    def test_duplicate_stage_is_a_conflict(self, store, obligation_factory):
        store.save_obligations([obligation_factory()])

        result = store.save_obligations([obligation_factory(id="other-id")])

        assert result.status == OperationStatus.CONFLICT
        assert result.error_code == "DUPLICATE_OBLIGATION"
        assert len(store.list_obligations("evt-1").data) == 1

    def test_conflicting_batch_writes_nothing(self, store, obligation_factory):
        store.save_obligations([obligation_factory()])
        fresh = obligation_factory(timing_stage=TimingStage.ONE_HOUR_BEFORE)

        store.save_obligations([fresh, obligation_factory(id="dupe")])

        assert store.get_obligation(fresh.id) is None

    def test_returned_records_are_copies(self, store, obligation_factory):
        obligation = obligation_factory()
        store.save_obligations([obligation])

        listed = store.list_obligations("evt-1").data[0]
        listed.status = ObligationStatus.SENT

        assert store.get_obligation(obligation.id).status == ObligationStatus.SCHEDULED


@pytest.mark.unit
class TestReplaceSchedule:
    def test_replaces_scheduled_rows(self, store, obligation_factory):
        store.save_obligations([obligation_factory()])
        replacement = obligation_factory(timing_stage=TimingStage.ONE_HOUR_BEFORE)

        store.replace_schedule("evt-1", [replacement])

        stages = [o.timing_stage for o in store.list_obligations("evt-1").data]
        assert stages == [TimingStage.ONE_HOUR_BEFORE]

    def test_keeps_rows_that_already_left_scheduled(self, store, obligation_factory):
        sent = obligation_factory()
        store.save_obligations([sent])
        store.claim(sent.id)
        store.complete(sent.id, ObligationStatus.SENT, 1, 1, 0)

        result = store.replace_schedule(
            "evt-1", [obligation_factory(id="new-row"), obligation_factory(
                timing_stage=TimingStage.AT_EVENT_START,
                scheduled_time=DUE_AT + timedelta(days=1),
            )]
        )

        assert result.data == ["evt-1:at_event_start"]
        rows = store.list_obligations("evt-1").data
        assert len(rows) == 2
        assert store.get_obligation(sent.id).status == ObligationStatus.SENT

    def test_other_events_untouched(self, store, obligation_factory):
        other = obligation_factory(event_id="evt-2")
        store.save_obligations([other])

        store.replace_schedule("evt-1", [])

        assert store.get_obligation(other.id) is not None


@pytest.mark.unit
class TestFetchDue:
    def test_only_scheduled_rows_at_or_before_cutoff(self, store, obligation_factory):
        due = obligation_factory()
        future = obligation_factory(
            timing_stage=TimingStage.AT_EVENT_START,
            scheduled_time=DUE_AT + timedelta(days=1),
        )
        claimed = obligation_factory(
            timing_stage=TimingStage.THREE_DAYS_BEFORE,
            scheduled_time=DUE_AT - timedelta(days=2),
        )
        store.save_obligations([due, future, claimed])
        store.claim(claimed.id)

        result = store.fetch_due(DUE_AT)

        assert [o.id for o in result.data] == [due.id]

    def test_sorted_oldest_first(self, store, obligation_factory):
        newer = obligation_factory()
        older = obligation_factory(
            timing_stage=TimingStage.THREE_DAYS_BEFORE,
            scheduled_time=DUE_AT - timedelta(days=2),
        )
        store.save_obligations([newer, older])

        result = store.fetch_due(DUE_AT + timedelta(minutes=5))

        assert [o.id for o in result.data] == [older.id, newer.id]


@pytest.mark.unit
class TestClaimAndComplete:
    def test_claim_moves_to_sending_once(self, store, obligation_factory):
        obligation = obligation_factory()
        store.save_obligations([obligation])

        assert store.claim(obligation.id, now=DUE_AT) is True
        assert store.claim(obligation.id, now=DUE_AT) is False
        assert store.get_obligation(obligation.id).status == ObligationStatus.SENDING

    def test_claim_unknown_obligation(self, store):
        assert store.claim("missing") is False

    def test_concurrent_claims_have_one_winner(self, store, obligation_factory):
        obligation = obligation_factory()
        store.save_obligations([obligation])
        results = []
        barrier = threading.Barrier(8)

        def contend():
            barrier.wait()
            results.append(store.claim(obligation.id))

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1

    def test_complete_writes_counts(self, store, obligation_factory):
        obligation = obligation_factory()
        store.save_obligations([obligation])
        store.claim(obligation.id)

        result = store.complete(
            obligation.id,
            ObligationStatus.FAILED,
            recipients_count=3,
            sent_count=0,
            failed_count=3,
            error_details={"error": "boom", "error_code": "X"},
            now=DUE_AT,
        )

        assert result.is_success
        stored = store.get_obligation(obligation.id)
        assert stored.status == ObligationStatus.FAILED
        assert (stored.recipients_count, stored.sent_count, stored.failed_count) == (3, 0, 3)
        assert stored.error_details["error_code"] == "X"
        assert stored.updated_at == DUE_AT

    def test_complete_requires_sending(self, store, obligation_factory):
        obligation = obligation_factory()
        store.save_obligations([obligation])

        result = store.complete(obligation.id, ObligationStatus.SENT, 0, 0, 0)

        assert result.status == OperationStatus.CONFLICT

    def test_complete_rejects_non_terminal_status(self, store, obligation_factory):
        obligation = obligation_factory()
        store.save_obligations([obligation])
        store.claim(obligation.id)

        result = store.complete(obligation.id, ObligationStatus.SCHEDULED, 0, 0, 0)

        assert result.error_code == "INVALID_STATUS"


@pytest.mark.unit
class TestCounters:
    def test_usage_log_updates_integration(self, store, integration_factory):
        store.save_integration(integration_factory())
        log = IntegrationUsageLog(
            integration_id="int-1",
            operation_type="email",
            recipients_count=3,
            success_count=2,
            failed_count=1,
        )

        store.record_integration_usage(log, now=DUE_AT)
        store.record_integration_usage(log.model_copy(update={"id": "log-2"}), now=DUE_AT)

        integration = store.get_integration("int-1")
        assert integration.total_sent == 4
        assert integration.last_used_at == DUE_AT
        assert len(store.usage_logs("int-1")) == 2

    def test_usage_for_unknown_integration(self, store):
        log = IntegrationUsageLog(
            integration_id="nope",
            operation_type="sms",
            recipients_count=1,
            success_count=1,
            failed_count=0,
        )

        assert store.record_integration_usage(log).status == OperationStatus.NOT_FOUND
        assert store.usage_logs() == []

    def test_increment_event_counter(self, store, event_factory):
        store.save_event(event_factory())

        store.increment_event_notifications_sent("evt-1", 2)
        result = store.increment_event_notifications_sent("evt-1", 3)

        assert result.data == 5
        assert store.get_event("evt-1").data.notifications_sent == 5

    def test_inactive_integration_is_not_found(self, store, integration_factory):
        store.save_integration(integration_factory(is_active=False))

        assert store.get_active_integration("int-1").status == OperationStatus.NOT_FOUND
