"""Due obligation selection and claiming."""

from datetime import datetime, timedelta
from typing import List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    NotificationObligation,
    ensure_utc,
    utc_now,
)
from infrastructure.notifications.store import NotificationStore
from infrastructure.operations import OperationResult

logger = get_module_logger()


class DueNotificationSelector:
    """Finds obligations that are due and claims them one at a time.

    An obligation is due when it is still ``scheduled`` and its time falls at
    or before ``now + lookahead``.
    """

    def __init__(self, store: NotificationStore, lookahead: timedelta):
        self._store = store
        self.lookahead = lookahead

    def select_due(self, now: Optional[datetime] = None) -> OperationResult:
        """Due obligations ordered by scheduled time, oldest first."""
        current = ensure_utc(now) if now else utc_now()
        cutoff = current + self.lookahead
        result = self._store.fetch_due(cutoff)
        if not result.is_success:
            logger.error(
                "due_obligations_fetch_failed",
                cutoff=cutoff.isoformat(),
                error=result.message,
                error_code=result.error_code,
            )
            return result

        due: List[NotificationObligation] = sorted(
            result.data or [], key=lambda o: o.scheduled_time
        )
        logger.info("due_obligations_selected", count=len(due), cutoff=cutoff.isoformat())
        return OperationResult.success(data=due)

    def claim(
        self, obligation: NotificationObligation, now: Optional[datetime] = None
    ) -> bool:
        """Atomically move an obligation from scheduled to sending.

        Returns:
            True if this caller won the claim.
        """
        won = self._store.claim(obligation.id, now=now)
        if not won:
            logger.info(
                "obligation_already_claimed",
                obligation_id=obligation.id,
                event_id=obligation.event_id,
            )
        return won
