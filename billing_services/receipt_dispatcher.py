"""
ReceiptDispatcher -- delivers receipt events from the outbox.

Responsibility:
    After an approval commits, hand its receipt event to the configured
    ``ReceiptNotifier`` exactly once.  Undelivered events stay in the
    outbox for ``dispatch_pending`` to retry.

Architecture position:
    Services -- owns its own short transactions through the session
    factory; never runs inside the approval transaction.

Invariants enforced:
    - Claim-then-send: a short transaction sets ``dispatched_at`` with a
      conditional UPDATE gated on ``dispatched_at IS NULL`` and commits
      before the notifier runs, so two dispatchers cannot both deliver one
      event and no database lock is held during the send.
    - A failed send releases the claim in a second short transaction,
      keeping the attempt count and recording the error.
    - An event whose send was interrupted by a crash stays claimed; the
      event id lets a receiver drop the rare duplicate after manual retry.
    - Events that used up ``max_attempts`` are left for an operator.

Failure modes:
    - Notifier exceptions never propagate out of ``dispatch``; they are
      logged (with the ``NotificationDeliveryError`` code) and counted.
    - Database errors propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from billing_config.schema import ReceiptPolicy
from billing_kernel.db.engine import session_scope
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import NotificationDeliveryError
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import ReceiptEvent
from billing_modules.invoicing.notifications import ReceiptNotifier
from billing_modules.invoicing.orm import ReceiptEventModel

logger = get_logger("services.receipt_dispatcher")


@dataclass(frozen=True)
class DispatchSummary:
    """Outcome of one outbox sweep."""

    delivered: int
    failed: int


class ReceiptDispatcher:
    """Outbox delivery for receipt events."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        notifier: ReceiptNotifier,
        clock: Clock | None = None,
        policy: ReceiptPolicy | None = None,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._policy = policy or ReceiptPolicy()

    def _claim(self, event_id: UUID) -> ReceiptEvent | None:
        with session_scope(self._session_factory) as session:
            claimed = session.execute(
                update(ReceiptEventModel)
                .where(
                    ReceiptEventModel.id == event_id,
                    ReceiptEventModel.dispatched_at.is_(None),
                    ReceiptEventModel.attempts < self._policy.max_attempts,
                )
                .values(
                    dispatched_at=self._clock.now_utc(),
                    attempts=ReceiptEventModel.attempts + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                return None
            return session.get(ReceiptEventModel, event_id).to_dto()

    def _release_claim(self, event_id: UUID, error: NotificationDeliveryError) -> None:
        # The claim already counted this attempt.
        with session_scope(self._session_factory) as session:
            session.execute(
                update(ReceiptEventModel)
                .where(ReceiptEventModel.id == event_id)
                .values(dispatched_at=None, last_error=error.reason[:4000])
                .execution_options(synchronize_session=False)
            )

    def _send(self, event: ReceiptEvent) -> None:
        try:
            self._notifier.send_receipt(event)
        except Exception as exc:
            raise NotificationDeliveryError(str(event.id), str(exc)) from exc

    def dispatch(self, event_id: UUID) -> bool:
        """
        Deliver one event.

        Returns:
            True if this call delivered it; False if it was already
            delivered, exhausted, or the notifier failed.
        """
        event = self._claim(event_id)
        if event is None:
            logger.debug(
                "receipt_dispatch_skipped",
                extra={"receipt_event_id": str(event_id)},
            )
            return False

        try:
            self._send(event)
        except NotificationDeliveryError as error:
            logger.warning(
                "receipt_dispatch_failed",
                extra={"receipt_event_id": str(event_id)},
                exc_info=True,
            )
            self._release_claim(event_id, error)
            return False

        logger.info(
            "receipt_dispatched",
            extra={
                "receipt_event_id": str(event_id),
                "invoice_id": str(event.invoice_id),
                "submission_id": str(event.submission_id),
            },
        )
        return True

    def dispatch_pending(self, limit: int | None = None) -> DispatchSummary:
        """Sweep undelivered events, oldest first."""
        batch = limit or self._policy.batch_size
        with session_scope(self._session_factory) as session:
            event_ids = list(
                session.execute(
                    select(ReceiptEventModel.id)
                    .where(
                        ReceiptEventModel.dispatched_at.is_(None),
                        ReceiptEventModel.attempts < self._policy.max_attempts,
                    )
                    .order_by(ReceiptEventModel.created_at.asc(), ReceiptEventModel.id.asc())
                    .limit(batch)
                ).scalars()
            )

        delivered = failed = 0
        for event_id in event_ids:
            if self.dispatch(event_id):
                delivered += 1
            else:
                failed += 1

        summary = DispatchSummary(delivered=delivered, failed=failed)
        logger.info(
            "receipt_outbox_swept",
            extra={"delivered": delivered, "failed": failed, "candidates": len(event_ids)},
        )
        return summary
