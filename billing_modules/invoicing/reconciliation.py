"""
Reconciliation Workflow (``billing_modules.invoicing.reconciliation``).

Responsibility
--------------
Staff decisions on payment submissions.  Approving marks the submission
approved and the invoice paid, records a receipt event in the outbox and
generates the next billing cycle; rejecting only closes the submission.

Architecture position
---------------------
**Modules layer** -- imperative shell.  Everything an approval writes is
flushed into the caller's single transaction, so readers see either all of
it or none of it.

Invariants enforced
-------------------
* Both status flips are conditional UPDATEs gated on ``status='pending'``.
  A rowcount of 0 means a concurrent reviewer won; the loser raises a
  Conflict and its transaction rolls back.
* Exactly one receipt event per approval (unique on submission_id).
* Exactly one successor per paid invoice (RecurringBillingGenerator).

Failure modes
-------------
* ``SubmissionNotFoundError`` / ``InvoiceNotFoundError``.
* ``SubmissionAlreadyReviewedError`` -- submission is not pending.
* ``InvoiceNotPayableError`` -- invoice is paid or cancelled.
* Any Conflict from the generator aborts the whole approval.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update

from billing_kernel.exceptions import (
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    SubmissionAlreadyReviewedError,
    SubmissionNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.base import BaseService
from billing_modules.invoicing.models import (
    PaymentStatus,
    PaymentSubmission,
    ReconciliationResult,
    SubmissionStatus,
)
from billing_modules.invoicing.orm import (
    InvoiceModel,
    PaymentSubmissionModel,
    ReceiptEventModel,
)
from billing_modules.invoicing.recurring import RecurringBillingGenerator
from billing_modules.invoicing.workflows import (
    INVOICE_PAYMENT_WORKFLOW,
    SUBMISSION_WORKFLOW,
)

logger = get_logger("modules.invoicing.reconciliation")


class ReconciliationWorkflow(BaseService):
    """Approve or reject payment submissions."""

    def _load_pending(self, submission_id: UUID, action: str) -> PaymentSubmissionModel:
        submission = self.session.get(PaymentSubmissionModel, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(str(submission_id))
        if not SUBMISSION_WORKFLOW.allows(submission.status, action):
            raise SubmissionAlreadyReviewedError(str(submission.id), submission.status)
        return submission

    def _current_status(self, model_cls, row_id: UUID) -> str:
        return self.session.execute(
            select(model_cls.status).where(model_cls.id == row_id)
        ).scalar_one()

    def _close_submission(
        self,
        submission: PaymentSubmissionModel,
        to_state: SubmissionStatus,
        reviewer_id: UUID | None,
    ) -> None:
        now = self.clock.now_utc()
        result = self.session.execute(
            update(PaymentSubmissionModel)
            .where(
                PaymentSubmissionModel.id == submission.id,
                PaymentSubmissionModel.status == SubmissionStatus.PENDING.value,
            )
            .values(
                status=to_state.value,
                reviewed_at=now,
                reviewer_id=reviewer_id,
                updated_at=now,
                updated_by_id=reviewer_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self._current_status(PaymentSubmissionModel, submission.id)
            logger.warning(
                "submission_review_lost_race",
                extra={"submission_id": str(submission.id), "status": current},
            )
            raise SubmissionAlreadyReviewedError(str(submission.id), current)
        self.session.refresh(submission)

    def approve(
        self,
        submission_id: UUID,
        reviewer_id: UUID | None = None,
    ) -> ReconciliationResult:
        """
        Approve a pending submission against its pending invoice.

        Postconditions (all in the caller's transaction):
            submission approved, invoice paid, one receipt event recorded,
            one pending successor invoice created.
        """
        with LogContext.bind(submission_id=str(submission_id)):
            submission = self._load_pending(submission_id, "approve")

            invoice = self.session.get(InvoiceModel, submission.invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(str(submission.invoice_id))
            if not INVOICE_PAYMENT_WORKFLOW.allows(invoice.status, "record_payment"):
                raise InvoiceNotPayableError(str(invoice.id), invoice.status)

            logger.info(
                "submission_approval_started",
                extra={"invoice_id": str(invoice.id), "amount": submission.amount},
            )

            self._close_submission(submission, SubmissionStatus.APPROVED, reviewer_id)

            now = self.clock.now_utc()
            result = self.session.execute(
                update(InvoiceModel)
                .where(
                    InvoiceModel.id == invoice.id,
                    InvoiceModel.status == PaymentStatus.PENDING.value,
                )
                .values(
                    status=PaymentStatus.PAID.value,
                    updated_at=now,
                    updated_by_id=reviewer_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                current = self._current_status(InvoiceModel, invoice.id)
                logger.warning(
                    "invoice_payment_lost_race",
                    extra={"invoice_id": str(invoice.id), "status": current},
                )
                raise InvoiceNotPayableError(str(invoice.id), current)
            self.session.refresh(invoice)

            event = ReceiptEventModel(
                submission_id=submission.id,
                invoice_id=invoice.id,
                client_name=invoice.client_name,
                client_email=invoice.client_email,
                package=invoice.package,
                amount=submission.amount,
                created_at=now,
                attempts=0,
            )
            self.session.add(event)
            self.session.flush()

            successor = RecurringBillingGenerator(
                self.session, self.clock,
            ).generate_successor(invoice.id, actor_id=reviewer_id)

            logger.info(
                "submission_approved",
                extra={
                    "invoice_id": str(invoice.id),
                    "successor_id": str(successor.id),
                    "receipt_event_id": str(event.id),
                },
            )
            return ReconciliationResult(
                submission=submission.to_dto(),
                paid_invoice=invoice.to_dto(),
                successor=successor,
                receipt_event_id=event.id,
            )

    def reject(
        self,
        submission_id: UUID,
        reviewer_id: UUID | None = None,
    ) -> PaymentSubmission:
        """Reject a pending submission; its invoice stays as it is."""
        with LogContext.bind(submission_id=str(submission_id)):
            submission = self._load_pending(submission_id, "reject")
            self._close_submission(submission, SubmissionStatus.REJECTED, reviewer_id)
            logger.info(
                "submission_rejected",
                extra={"invoice_id": str(submission.invoice_id)},
            )
            return submission.to_dto()
