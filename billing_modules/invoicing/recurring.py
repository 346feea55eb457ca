"""
Recurring Billing Generator (``billing_modules.invoicing.recurring``).

Responsibility
--------------
Given a paid invoice, create the pending invoice for the next billing cycle
of the same engagement.

Architecture position
---------------------
**Modules layer** -- imperative shell.  Called synchronously from the
reconciliation workflow inside the approval transaction; flushes only.

Invariants enforced
-------------------
* successor.setup_fee == 0 and successor.monthly_fee == source.monthly_fee.
* successor.due_date == advance_one_month(source.due_date), falling back to
  the source's creation date when it has no due date.
* successor.tracking_code == source.tracking_code (copied, never reissued).
* At most one successor per source and one invoice per (client, due date):
  checked before insert and backed by unique constraints for races.

Failure modes
-------------
* ``InvoiceNotFoundError`` -- unknown source.
* ``InvoiceNotPaidError`` -- source is not paid.
* ``SuccessorAlreadyGeneratedError`` / ``DuplicateInvoiceError`` -- the next
  cycle already exists.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from billing_kernel.db.base import as_utc
from billing_kernel.db.types import ZERO
from billing_kernel.domain.calendar import advance_one_month
from billing_kernel.exceptions import (
    DuplicateInvoiceError,
    InvoiceNotFoundError,
    InvoiceNotPaidError,
    SuccessorAlreadyGeneratedError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_modules.invoicing.models import Invoice, PaymentStatus
from billing_modules.invoicing.orm import InvoiceModel

logger = get_logger("modules.invoicing.recurring")


class RecurringBillingGenerator(BaseService):
    """Creates the next billing cycle for a paid invoice."""

    def _existing_successor(self, source_id: UUID) -> InvoiceModel | None:
        return self.session.execute(
            select(InvoiceModel).where(InvoiceModel.source_invoice_id == source_id)
        ).scalar_one_or_none()

    def _invoice_at(self, client_key: str, due_date) -> InvoiceModel | None:
        return self.session.execute(
            select(InvoiceModel).where(
                InvoiceModel.client_key == client_key,
                InvoiceModel.due_date == due_date,
            )
        ).scalar_one_or_none()

    def _raise_if_taken(self, source: InvoiceModel, next_due) -> None:
        existing = self._existing_successor(source.id)
        if existing is not None:
            raise SuccessorAlreadyGeneratedError(str(source.id), str(existing.id))
        clash = self._invoice_at(source.client_key, next_due)
        if clash is not None:
            raise DuplicateInvoiceError(source.client_key, next_due.isoformat())

    def generate_successor(
        self,
        source_invoice_id: UUID,
        actor_id: UUID | None = None,
    ) -> Invoice:
        """
        Create and flush the successor of a paid invoice.

        Returns:
            The new pending invoice.
        """
        source = self.session.get(InvoiceModel, source_invoice_id)
        if source is None:
            raise InvoiceNotFoundError(str(source_invoice_id))
        if source.status != PaymentStatus.PAID.value:
            raise InvoiceNotPaidError(str(source.id), source.status)

        base_date = source.due_date or as_utc(source.created_at).date()
        next_due = advance_one_month(base_date)

        self._raise_if_taken(source, next_due)

        now = self.clock.now_utc()
        successor = InvoiceModel(
            client_name=source.client_name,
            client_email=source.client_email,
            client_key=source.client_key,
            package=source.package,
            setup_fee=ZERO,
            monthly_fee=source.monthly_fee,
            due_date=next_due,
            status=PaymentStatus.PENDING.value,
            project_status=source.project_status,
            tracking_code=source.tracking_code,
            source_invoice_id=source.id,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(successor)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "successor_insert_race",
                extra={"source_invoice_id": str(source.id), "due_date": next_due},
            )
            self._raise_if_taken(source, next_due)
            raise DuplicateInvoiceError(source.client_key, next_due.isoformat())

        logger.info(
            "successor_invoice_generated",
            extra={
                "source_invoice_id": str(source.id),
                "successor_id": str(successor.id),
                "due_date": next_due,
                "monthly_fee": source.monthly_fee,
                "tracking_code": successor.tracking_code,
            },
        )
        return successor.to_dto()
