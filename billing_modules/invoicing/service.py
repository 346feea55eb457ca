"""
Invoicing Module Service -- invoice store and payment submission queue.

Thin glue layer that:
1. Validates input at the boundary (nothing is written on a bad field)
2. Persists invoices and payment submissions through the ORM
3. Calls TrackingCodeAllocator once a new invoice is flushed
4. Applies the manual-edit rules for payment status and locked fields

The caller owns the transaction boundary (the back-office facade commits
or rolls back); this service only flushes.

Usage:
    service = InvoiceService(session, clock, tracking_policy, invoice_policy)
    invoice = service.create_invoice(
        client_name="Acme Studio", client_email="ops@acme.test",
        package="Company profile website", setup_fee=Decimal("10000"),
        monthly_fee=Decimal("2000"), due_date=date(2025, 1, 15),
    )
"""

from __future__ import annotations

import secrets
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_config.schema import InvoicePolicy, TrackingPolicy
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.validation import (
    normalize_client_key,
    require_amount,
    require_choice,
    require_date,
    require_email,
    require_text,
)
from billing_kernel.exceptions import (
    DuplicateInvoiceError,
    InvoiceLockedError,
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    SubmissionNotFoundError,
    TrackingCodeImmutableError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_modules.invoicing.models import (
    Invoice,
    PaymentStatus,
    PaymentSubmission,
    ProjectStatus,
    SubmissionStatus,
)
from billing_modules.invoicing.orm import InvoiceModel, PaymentSubmissionModel
from billing_modules.invoicing.tracking import TrackingCodeAllocator
from billing_modules.invoicing.workflows import EDIT_ACTIONS, INVOICE_PAYMENT_WORKFLOW

logger = get_logger("modules.invoicing.service")

EDITABLE_FIELDS = frozenset({
    "client_name",
    "client_email",
    "package",
    "setup_fee",
    "monthly_fee",
    "due_date",
    "status",
    "project_status",
    "tracking_code",
})

# Fields that can no longer change once the invoice is paid.
LOCKED_WHEN_PAID = ("setup_fee", "monthly_fee", "due_date", "client_email")


class InvoiceService(BaseService):
    """
    Invoice store and payment submission queue.

    Contract:
        Every public method validates its whole input before the first
        write and raises a typed ``BillingKernelError`` on failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        tracking_policy: TrackingPolicy | None = None,
        invoice_policy: InvoicePolicy | None = None,
        choose: Callable[[Sequence[str]], str] = secrets.choice,
    ):
        super().__init__(session, clock)
        self.invoice_policy = invoice_policy or InvoicePolicy()
        self.tracking = TrackingCodeAllocator(
            session, self.clock, tracking_policy, choose=choose,
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def _load_invoice(self, invoice_id: UUID) -> InvoiceModel:
        model = self.session.get(InvoiceModel, invoice_id)
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _load_submission(self, submission_id: UUID) -> PaymentSubmissionModel:
        model = self.session.get(PaymentSubmissionModel, submission_id)
        if model is None:
            raise SubmissionNotFoundError(str(submission_id))
        return model

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._load_invoice(invoice_id).to_dto()

    def get_submission(self, submission_id: UUID) -> PaymentSubmission:
        return self._load_submission(submission_id).to_dto()

    def list_invoices(
        self,
        client_email: str | None = None,
        status: PaymentStatus | str | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
    ) -> list[Invoice]:
        """
        Invoices filtered by client, status and due-date range.

        Ordered by due date (undated last), then creation time.
        """
        stmt = select(InvoiceModel)
        if client_email is not None:
            stmt = stmt.where(InvoiceModel.client_key == normalize_client_key(client_email))
        if status is not None:
            stmt = stmt.where(
                InvoiceModel.status == require_choice(status, "status", PaymentStatus).value
            )
        if due_from is not None:
            stmt = stmt.where(InvoiceModel.due_date >= due_from)
        if due_to is not None:
            stmt = stmt.where(InvoiceModel.due_date <= due_to)
        stmt = stmt.order_by(
            InvoiceModel.due_date.asc().nulls_last(),
            InvoiceModel.created_at.asc(),
            InvoiceModel.id.asc(),
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def list_pending_submissions(self) -> list[PaymentSubmission]:
        """Submissions awaiting review, oldest first."""
        stmt = (
            select(PaymentSubmissionModel)
            .where(PaymentSubmissionModel.status == SubmissionStatus.PENDING.value)
            .order_by(PaymentSubmissionModel.created_at.asc(), PaymentSubmissionModel.id.asc())
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def list_submissions_for(self, invoice_id: UUID) -> list[PaymentSubmission]:
        self._load_invoice(invoice_id)
        stmt = (
            select(PaymentSubmissionModel)
            .where(PaymentSubmissionModel.invoice_id == invoice_id)
            .order_by(PaymentSubmissionModel.created_at.asc(), PaymentSubmissionModel.id.asc())
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    # =========================================================================
    # Invoices
    # =========================================================================

    def _check_slot_free(
        self,
        client_key: str,
        due_date: date | None,
        exclude_id: UUID | None = None,
    ) -> None:
        if due_date is None:
            return
        stmt = select(InvoiceModel.id).where(
            InvoiceModel.client_key == client_key,
            InvoiceModel.due_date == due_date,
        )
        if exclude_id is not None:
            stmt = stmt.where(InvoiceModel.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateInvoiceError(client_key, due_date.isoformat())

    def _flush_or_duplicate(self, client_key: str, due_date: date | None) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Only the (client_key, due_date) constraint can trip here; the
            # caller's transaction is rolled back by the facade.
            raise DuplicateInvoiceError(
                client_key, due_date.isoformat() if due_date else "none",
            ) from exc

    def create_invoice(
        self,
        client_name: str,
        client_email: str,
        package: str,
        setup_fee: Decimal | int | str,
        monthly_fee: Decimal | int | str,
        due_date: date | str | None,
        project_status: ProjectStatus | str = ProjectStatus.PENDING,
        actor_id: UUID | None = None,
    ) -> Invoice:
        """
        Create a pending invoice and attach its engagement tracking code.

        Raises:
            ValidationError: a field is missing or out of range.
            DuplicateInvoiceError: the client already has an invoice due that day.
        """
        policy = self.invoice_policy
        name = require_text(client_name, "client_name", min_length=policy.min_name_length)
        email = require_email(client_email)
        package_text = require_text(package, "package", min_length=policy.min_package_length)
        setup = require_amount(setup_fee, "setup_fee")
        monthly = require_amount(monthly_fee, "monthly_fee")
        if due_date is None:
            if policy.require_due_date:
                raise ValidationError("due_date", "is required")
            due = None
        else:
            due = require_date(due_date, "due_date")
        project = require_choice(project_status, "project_status", ProjectStatus)
        client_key = normalize_client_key(email)

        self._check_slot_free(client_key, due)

        logger.info(
            "invoice_create_started",
            extra={"client_key": client_key, "due_date": due},
        )

        now = self.clock.now_utc()
        model = InvoiceModel(
            client_name=name,
            client_email=email,
            client_key=client_key,
            package=package_text,
            setup_fee=setup,
            monthly_fee=monthly,
            due_date=due,
            status=PaymentStatus.PENDING.value,
            project_status=project.value,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(model)
        self._flush_or_duplicate(client_key, due)

        self.tracking.allocate(model)

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(model.id),
                "tracking_code": model.tracking_code,
                "total_amount": setup + monthly,
            },
        )
        return model.to_dto()

    def edit_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID | None = None,
        **changes: Any,
    ) -> Invoice:
        """
        Apply a manual edit.

        Rules:
            - tracking_code never changes.
            - status moves only pending <-> cancelled; paid is reached by
              approval alone.
            - a paid invoice keeps its fees, due date and client email.
            - a successor stays due after the invoice it was generated from.

        Raises:
            ValidationError, InvoiceNotFoundError, TrackingCodeImmutableError,
            InvalidTransitionError, InvoiceLockedError, DuplicateInvoiceError.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                sorted(unknown)[0], "is not an editable invoice field",
            )

        model = self._load_invoice(invoice_id)
        policy = self.invoice_policy

        # Validate and normalize every field before touching the model.
        updates: dict[str, Any] = {}
        if "client_name" in changes:
            updates["client_name"] = require_text(
                changes["client_name"], "client_name", min_length=policy.min_name_length,
            )
        if "client_email" in changes:
            updates["client_email"] = require_email(changes["client_email"])
        if "package" in changes:
            updates["package"] = require_text(
                changes["package"], "package", min_length=policy.min_package_length,
            )
        for fee in ("setup_fee", "monthly_fee"):
            if fee in changes:
                updates[fee] = require_amount(changes[fee], fee)
        if "due_date" in changes:
            if changes["due_date"] is None:
                if policy.require_due_date:
                    raise ValidationError("due_date", "is required")
                updates["due_date"] = None
            else:
                updates["due_date"] = require_date(changes["due_date"], "due_date")
        if "status" in changes:
            updates["status"] = require_choice(changes["status"], "status", PaymentStatus).value
        if "project_status" in changes:
            updates["project_status"] = require_choice(
                changes["project_status"], "project_status", ProjectStatus,
            ).value

        if "tracking_code" in changes and changes["tracking_code"] != model.tracking_code:
            raise TrackingCodeImmutableError(str(model.id), model.tracking_code)

        # Drop no-op fields so equality edits on locked invoices pass.
        updates = {k: v for k, v in updates.items() if getattr(model, k) != v}

        if "status" in updates:
            action = EDIT_ACTIONS.get(updates["status"], "mark_paid")
            INVOICE_PAYMENT_WORKFLOW.transition_for(model.status, action)

        if model.status == PaymentStatus.PAID.value:
            for field in LOCKED_WHEN_PAID:
                if field in updates:
                    raise InvoiceLockedError(str(model.id), field)

        if updates.get("due_date") is not None and model.source_invoice_id is not None:
            self._check_after_source(model.source_invoice_id, updates["due_date"])

        new_key = model.client_key
        if "client_email" in updates:
            new_key = normalize_client_key(updates["client_email"])
        new_due = updates.get("due_date", model.due_date)
        if new_key != model.client_key or "due_date" in updates:
            self._check_slot_free(new_key, new_due, exclude_id=model.id)

        if not updates:
            return model.to_dto()

        for key, value in updates.items():
            setattr(model, key, value)
        model.client_key = new_key
        model.stamp_update(self.clock.now_utc(), actor_id)
        self._flush_or_duplicate(new_key, new_due)

        logger.info(
            "invoice_edited",
            extra={"invoice_id": str(model.id), "fields": sorted(updates)},
        )
        return model.to_dto()

    def _check_after_source(self, source_id: UUID, due: date) -> None:
        source = self.session.get(InvoiceModel, source_id)
        if source is None or source.due_date is None:
            return
        if due <= source.due_date:
            raise ValidationError(
                "due_date", f"must be after {source.due_date.isoformat()}, the previous cycle's due date",
            )

    def delete_invoice(self, invoice_id: UUID, actor_id: UUID | None = None) -> None:
        """
        Physically delete one invoice.

        Its submissions go with it.  Siblings keep their tracking code and a
        successor keeps existing with ``source_invoice_id`` cleared.
        """
        model = self._load_invoice(invoice_id)
        self.session.delete(model)
        self.session.flush()
        logger.info(
            "invoice_deleted",
            extra={
                "invoice_id": str(invoice_id),
                "tracking_code": model.tracking_code,
                "deleted_by": str(actor_id) if actor_id else None,
            },
        )

    # =========================================================================
    # Payment submissions
    # =========================================================================

    def submit_payment(
        self,
        invoice_id: UUID,
        amount: Decimal | int | str,
        proof_reference: str,
        actor_id: UUID | None = None,
    ) -> PaymentSubmission:
        """
        Queue a client's proof of payment for staff review.

        Raises:
            ValidationError: amount is not positive or proof is empty.
            InvoiceNotFoundError: no such invoice.
            InvoiceNotPayableError: the invoice is not pending.
        """
        claimed = require_amount(amount, "amount", allow_zero=False)
        proof = require_text(proof_reference, "proof_reference")

        invoice = self._load_invoice(invoice_id)
        if not INVOICE_PAYMENT_WORKFLOW.allows(invoice.status, "record_payment"):
            raise InvoiceNotPayableError(str(invoice.id), invoice.status)

        total = invoice.setup_fee + invoice.monthly_fee
        if claimed != total:
            logger.warning(
                "submission_amount_mismatch",
                extra={
                    "invoice_id": str(invoice.id),
                    "claimed": claimed,
                    "invoice_total": total,
                },
            )

        now = self.clock.now_utc()
        model = PaymentSubmissionModel(
            invoice_id=invoice.id,
            amount=claimed,
            proof_reference=proof,
            status=SubmissionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "payment_submitted",
            extra={
                "submission_id": str(model.id),
                "invoice_id": str(invoice.id),
                "amount": claimed,
            },
        )
        return model.to_dto()

    # =========================================================================
    # Reminders
    # =========================================================================

    def list_overdue(self, today: date | None = None) -> list[Invoice]:
        """Pending invoices whose due date has passed."""
        today = today or self.clock.today()
        stmt = (
            select(InvoiceModel)
            .where(
                InvoiceModel.status == PaymentStatus.PENDING.value,
                InvoiceModel.due_date < today,
            )
            .order_by(InvoiceModel.due_date.asc(), InvoiceModel.id.asc())
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
