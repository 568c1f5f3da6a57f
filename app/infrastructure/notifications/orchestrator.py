"""Delivery orchestrator.

One ``run`` selects the due obligations and processes them in order, one at a
time: claim, resolve recipients, pick the adapter, render per-recipient
content, dispatch through the batch sender and record the outcome. A failure
while processing one obligation marks that obligation failed and the run
moves on to the next.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from infrastructure.configuration import Settings
from infrastructure.logging import bind_run_context, get_module_logger
from infrastructure.notifications.adapters import (
    AdapterConstructionError,
    DeliveryAdapter,
    create_adapter,
)
from infrastructure.notifications.models import (
    DeliveryOutcome,
    EmailMessage,
    Event,
    Integration,
    NotificationObligation,
    ObligationStatus,
    RunSummary,
    SmsMessage,
    ensure_utc,
    utc_now,
)
from infrastructure.notifications.recipients import (
    RecipientResolutionError,
    RecipientResolver,
    RecipientType,
    ResolvedRecipients,
    email_recipients,
    normalize_phone,
    sms_recipients,
)
from infrastructure.notifications.recorder import OutcomeRecorder, final_status
from infrastructure.notifications.selector import DueNotificationSelector
from infrastructure.notifications.store import NotificationStore
from infrastructure.notifications.templates import (
    render_email,
    render_sms,
    variables_for,
)
from infrastructure.notifications.throttling import BatchSender
from infrastructure.security.credentials import (
    CredentialCipher,
    CredentialDecryptionError,
)

logger = get_module_logger()

ADAPTER_CONSTRUCTION_FAILED = "ADAPTER_CONSTRUCTION_FAILED"


@dataclass
class ReminderConfig:
    """Explicit configuration for one orchestrator.

    Attributes:
        app_url: Public base URL used in watch and unsubscribe links
        lookahead: Window past "now" still considered due
        email_batch_size: Recipients per email batch
        email_batch_delay: Seconds between email batches
        sms_delay: Seconds between SMS messages
        adapter_timeout: Upper bound in seconds on one adapter call
        max_summary_errors: Error messages kept in a run summary
    """

    app_url: str
    lookahead: timedelta = timedelta(minutes=5)
    email_batch_size: int = 100
    email_batch_delay: float = 1.0
    sms_delay: float = 0.1
    adapter_timeout: float = 30.0
    max_summary_errors: int = 50

    def __post_init__(self):
        if not self.app_url:
            raise ValueError("app_url is required")
        self.app_url = self.app_url.rstrip("/")
        if self.lookahead < timedelta(0):
            raise ValueError("lookahead must not be negative")
        if self.email_batch_size < 1:
            raise ValueError("email_batch_size must be at least 1")
        if self.email_batch_delay < 0 or self.sms_delay < 0:
            raise ValueError("delays must not be negative")
        if self.adapter_timeout <= 0:
            raise ValueError("adapter_timeout must be positive")
        if self.max_summary_errors < 1:
            raise ValueError("max_summary_errors must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReminderConfig":
        reminders = settings.reminders
        return cls(
            app_url=settings.server.APP_URL,
            lookahead=timedelta(seconds=reminders.lookahead_seconds),
            email_batch_size=reminders.email_batch_size,
            email_batch_delay=reminders.email_batch_delay_seconds,
            sms_delay=reminders.sms_delay_seconds,
            adapter_timeout=reminders.adapter_timeout_seconds,
            max_summary_errors=reminders.max_summary_errors,
        )


@dataclass
class _Progress:
    recipients_count: int = 0
    sent: int = 0
    failed: int = 0
    status: Optional[ObligationStatus] = None
    errors: List[str] = field(default_factory=list)


AdapterFactory = Callable[..., DeliveryAdapter]


class DeliveryOrchestrator:
    """Runs the reminder pipeline over every due obligation.

    Args:
        store: Obligation and recipient store
        config: Explicit pipeline configuration
        default_adapter: Adapter used when no integration is bound
        cipher: Decrypts integration credentials; without one, integration
            dispatches fail closed
        adapter_factory: Builds integration adapters
        batch_sender: Paces adapter calls; built from ``config`` if omitted
        clock: Current time provider
    """

    def __init__(
        self,
        store: NotificationStore,
        config: ReminderConfig,
        default_adapter: DeliveryAdapter,
        cipher: Optional[CredentialCipher] = None,
        adapter_factory: AdapterFactory = create_adapter,
        batch_sender: Optional[BatchSender] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self.config = config
        self._default_adapter = default_adapter
        self._cipher = cipher
        self._adapter_factory = adapter_factory
        self._sender = batch_sender or BatchSender(
            batch_size=config.email_batch_size,
            batch_delay=config.email_batch_delay,
            sms_delay=config.sms_delay,
            timeout=config.adapter_timeout,
        )
        self._clock = clock
        self._selector = DueNotificationSelector(store, config.lookahead)
        self._resolver = RecipientResolver(store)
        self._recorder = OutcomeRecorder(store)

    def run(self, now: Optional[datetime] = None, trigger: str = "cron") -> RunSummary:
        """Process every due obligation once.

        Args:
            now: Run instant, defaults to the clock
            trigger: What started the run, bound into the log context

        Returns:
            RunSummary with obligation counts by terminal status and
            recipient delivery totals
        """
        current = ensure_utc(now) if now else self._clock()
        summary = RunSummary()

        with bind_run_context(trigger=trigger):
            logger.info("reminder_run_started", now=current.isoformat())

            due = self._selector.select_due(current)
            if not due.is_success:
                self._add_error(summary, f"Failed to fetch due notifications: {due.message}")
                return summary

            for obligation in due.data:
                if not self._selector.claim(obligation, now=current):
                    continue
                summary.processed += 1
                progress = self._process_claimed(obligation, current)
                if progress.status == ObligationStatus.SENT:
                    summary.sent += 1
                elif progress.status == ObligationStatus.FAILED:
                    summary.failed += 1
                summary.recipients_sent += progress.sent
                summary.recipients_failed += progress.failed
                for error in progress.errors:
                    self._add_error(summary, error)

            logger.info(
                "reminder_run_completed",
                processed=summary.processed,
                sent=summary.sent,
                failed=summary.failed,
                recipients_sent=summary.recipients_sent,
                recipients_failed=summary.recipients_failed,
                error_count=len(summary.errors),
            )
        return summary

    def _add_error(self, summary: RunSummary, message: str) -> None:
        if len(summary.errors) < self.config.max_summary_errors:
            summary.errors.append(message)

    def _process_claimed(
        self, obligation: NotificationObligation, now: datetime
    ) -> _Progress:
        progress = _Progress()
        try:
            self._process(obligation, now, progress)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "obligation_processing_failed",
                obligation_id=obligation.id,
                event_id=obligation.event_id,
                error=str(e),
            )
            self._recorder.fail(
                obligation,
                e,
                recipients_count=progress.recipients_count,
                sent=progress.sent,
                failed=progress.failed,
                now=now,
            )
            progress.status = ObligationStatus.FAILED
            progress.errors.append(f"Obligation {obligation.id}: {e}")

        self._recorder.increment_event_sent(obligation.event_id, progress.sent)
        return progress

    def _process(
        self, obligation: NotificationObligation, now: datetime, progress: _Progress
    ) -> None:
        event = self._load_event(obligation)
        resolved = self._resolve(event)
        progress.recipients_count = len(resolved.recipients)

        if not resolved.recipients:
            logger.info(
                "obligation_has_no_recipients",
                obligation_id=obligation.id,
                event_id=event.id,
                source=resolved.source,
            )
            progress.status = final_status(0, 0, 0)
            self._recorder.complete(obligation, 0, 0, 0, now=now)
            return

        channel = obligation.channel
        email_targets = email_recipients(resolved.recipients) if channel.includes_email else []
        sms_targets = sms_recipients(resolved.recipients) if channel.includes_sms else []

        try:
            adapter = self._select_adapter(resolved.integration)
        except AdapterConstructionError as e:
            intended = len(email_targets) + len(sms_targets)
            progress.failed += intended
            logger.error(
                "adapter_construction_failed",
                obligation_id=obligation.id,
                integration_id=resolved.integration.id if resolved.integration else None,
                service_type=e.service_type,
                reason=e.error_code,
                error=str(e),
                error_code=ADAPTER_CONSTRUCTION_FAILED,
                failed_recipients=intended,
            )
            progress.errors.append(
                f"Obligation {obligation.id}: adapter construction failed: {e}"
            )
            progress.status = final_status(
                progress.recipients_count, 0, progress.failed, has_error=True
            )
            self._recorder.complete(
                obligation,
                progress.recipients_count,
                0,
                progress.failed,
                error=e,
                error_code=ADAPTER_CONSTRUCTION_FAILED,
                now=now,
            )
            return

        logger.info(
            "obligation_dispatch_started",
            obligation_id=obligation.id,
            event_id=event.id,
            timing_stage=obligation.timing_stage.value,
            channel=channel.value,
            adapter=adapter.adapter_name,
            email_recipients=len(email_targets),
            sms_recipients=len(sms_targets),
        )

        delivery_errors: List[str] = []
        if email_targets:
            sent, failed, errors = self._dispatch_email(
                obligation, event, email_targets, adapter, resolved.integration, now
            )
            progress.sent += sent
            progress.failed += failed
            delivery_errors.extend(errors)

        if sms_targets:
            sent, failed, errors = self._dispatch_sms(
                obligation, event, sms_targets, adapter, resolved.integration, now
            )
            progress.sent += sent
            progress.failed += failed
            delivery_errors.extend(errors)

        if progress.sent == 0 and progress.failed > 0 and delivery_errors:
            progress.errors.append(f"Obligation {obligation.id}: {delivery_errors[0]}")

        progress.status = final_status(
            progress.recipients_count, progress.sent, progress.failed
        )
        self._recorder.complete(
            obligation,
            progress.recipients_count,
            progress.sent,
            progress.failed,
            now=now,
        )

    def _load_event(self, obligation: NotificationObligation) -> Event:
        result = self._store.get_event(obligation.event_id)
        if not result.is_success:
            raise RecipientResolutionError(
                f"Event {obligation.event_id} could not be loaded: {result.message}",
                error_code=result.error_code,
            )
        return result.data

    def _resolve(self, event: Event) -> ResolvedRecipients:
        result = self._resolver.resolve(event)
        if not result.is_success:
            raise RecipientResolutionError(
                f"Recipients for event {event.id} could not be resolved: {result.message}",
                error_code=result.error_code,
            )
        return result.data

    def _select_adapter(self, integration: Optional[Integration]) -> DeliveryAdapter:
        """Default provider, or the integration's adapter. Never falls back."""
        if integration is None:
            return self._default_adapter

        if self._cipher is None:
            raise AdapterConstructionError(
                "ENCRYPTION_KEY is not configured",
                service_type=integration.service_type,
                error_code="MISSING_ENCRYPTION_KEY",
            )
        try:
            credentials = self._cipher.decrypt_integration(integration)
        except CredentialDecryptionError as e:
            raise AdapterConstructionError(
                str(e),
                service_type=integration.service_type,
                error_code="CREDENTIAL_DECRYPTION_FAILED",
            ) from e

        return self._adapter_factory(
            integration.service_type,
            credentials,
            configuration=integration.configuration,
            timeout=self.config.adapter_timeout,
        )

    def _render_email(
        self,
        obligation: NotificationObligation,
        event: Event,
        recipient: RecipientType,
        now: datetime,
    ) -> EmailMessage:
        variables = variables_for(event, recipient, self.config.app_url, now)
        rendered = render_email(obligation.timing_stage, variables)
        return EmailMessage(
            to=recipient.email.strip(),
            subject=rendered.subject,
            html_body=rendered.html_body,
            text_body=rendered.text_body,
        )

    def _render_sms(
        self,
        obligation: NotificationObligation,
        event: Event,
        recipient: RecipientType,
        now: datetime,
    ) -> SmsMessage:
        variables = variables_for(event, recipient, self.config.app_url, now)
        return SmsMessage(
            to=normalize_phone(recipient.phone),
            body=render_sms(obligation.timing_stage, variables),
        )

    def _dispatch_email(
        self,
        obligation: NotificationObligation,
        event: Event,
        recipients: List[RecipientType],
        adapter: DeliveryAdapter,
        integration: Optional[Integration],
        now: datetime,
    ) -> Tuple[int, int, List[str]]:
        messages = [self._render_email(obligation, event, r, now) for r in recipients]

        def record_batch(batch_outcome: DeliveryOutcome) -> None:
            self._recorder.record_usage(
                integration,
                "email",
                batch_outcome,
                batch_outcome.success_count + batch_outcome.failure_count,
                now=now,
            )

        outcome = self._sender.send_email(
            adapter,
            messages,
            on_batch=record_batch if integration is not None else None,
        )
        logger.info(
            "email_dispatch_completed",
            obligation_id=obligation.id,
            adapter=adapter.adapter_name,
            sent=outcome.success_count,
            failed=outcome.failure_count,
            estimated_cost=outcome.estimated_cost,
        )
        return outcome.success_count, outcome.failure_count, outcome.errors

    def _dispatch_sms(
        self,
        obligation: NotificationObligation,
        event: Event,
        recipients: List[RecipientType],
        adapter: DeliveryAdapter,
        integration: Optional[Integration],
        now: datetime,
    ) -> Tuple[int, int, List[str]]:
        messages = [self._render_sms(obligation, event, r, now) for r in recipients]
        outcome = self._sender.send_sms(adapter, messages)

        if integration is not None and outcome.success_count > 0:
            self._recorder.record_usage(
                integration, "sms", outcome, len(messages), now=now
            )
        logger.info(
            "sms_dispatch_completed",
            obligation_id=obligation.id,
            adapter=adapter.adapter_name,
            sent=outcome.success_count,
            failed=outcome.failure_count,
            estimated_cost=outcome.estimated_cost,
        )
        return outcome.success_count, outcome.failure_count, outcome.errors
