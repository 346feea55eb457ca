"""
BackOffice -- the operations facade of the billing core.

Responsibility:
    The documented surface that an admin UI, an HTTP layer or the CLI
    calls.  Each operation opens one session, runs the module services
    inside it, commits on success and rolls back on any exception.

Architecture position:
    Services -- the only layer that owns transaction boundaries.  Module
    services beneath it flush only.

Invariants enforced:
    - Session-per-operation: a failed operation rolls back its own
      transaction only and leaves the facade usable.
    - Every operation returns a value or raises a ``BillingKernelError``;
      database driver errors surface as ``PersistenceUnavailableError``.
    - Receipt delivery happens after the approval commits and never turns
      a committed approval into a failure.

Failure modes:
    - ValidationError / ConflictError / NotFoundError from the modules.
    - PersistenceUnavailableError when the store is unreachable.
"""

from __future__ import annotations

import dataclasses
import secrets
from contextlib import contextmanager
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Generator, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from billing_config.schema import BillingConfigurationSet
from billing_kernel.db.engine import get_session_factory, session_scope
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import ConflictError, PersistenceUnavailableError
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.expense.models import Expense, ExpenseCategory
from billing_modules.expense.service import ExpenseService
from billing_modules.invoicing.models import (
    Invoice,
    PaymentReminder,
    PaymentStatus,
    PaymentSubmission,
    ProjectStatus,
    ProjectTrackingView,
    ReconciliationResult,
)
from billing_modules.invoicing.notifications import ReceiptNotifier, RecordingNotifier
from billing_modules.invoicing.orm import InvoiceModel
from billing_modules.invoicing.reconciliation import ReconciliationWorkflow
from billing_modules.invoicing.reminders import select_due_reminders
from billing_modules.invoicing.service import InvoiceService
from billing_modules.reporting.models import FinancialReport
from billing_modules.reporting.service import ReportingService
from billing_services.receipt_dispatcher import DispatchSummary, ReceiptDispatcher

logger = get_logger("services.back_office")


class BackOffice:
    """
    Operations facade over invoices, submissions, expenses and reports.

    Usage:
        init_engine_from_url("postgresql://...")
        office = BackOffice(config=get_active_config(), notifier=my_mailer)
        invoice = office.create_invoice(...)
        submission = office.submit_payment(invoice.id, invoice.total_amount, "s3://slips/1.png")
        result = office.approve_submission(submission.id, reviewer_id=staff_id)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        config: BillingConfigurationSet | None = None,
        notifier: ReceiptNotifier | None = None,
        choose: Callable[[Sequence[str]], str] = secrets.choice,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()
        self._config = config or BillingConfigurationSet.with_defaults()
        self._choose = choose
        self.notifier = notifier or RecordingNotifier()
        self.dispatcher = ReceiptDispatcher(
            self._session_factory,
            self.notifier,
            clock=self._clock,
            policy=self._config.receipts,
        )

    @property
    def config(self) -> BillingConfigurationSet:
        return self._config

    # =========================================================================
    # Transaction plumbing
    # =========================================================================

    @contextmanager
    def _transaction(
        self,
        operation: str,
        actor_id: UUID | None = None,
    ) -> Generator[Session, None, None]:
        with LogContext.bind(
            correlation_id=uuid4(),
            actor_id=actor_id,
            operation=operation,
        ):
            try:
                with session_scope(self._session_factory) as session:
                    yield session
            except IntegrityError as exc:
                logger.warning("operation_integrity_conflict")
                raise ConflictError(
                    f"{operation} conflicts with existing data: {exc.orig}"
                ) from exc
            except (OperationalError, DBAPIError) as exc:
                logger.error("operation_persistence_failure", exc_info=True)
                raise PersistenceUnavailableError(operation, str(exc.orig)) from exc

    def _invoices(self, session: Session) -> InvoiceService:
        return InvoiceService(
            session,
            self._clock,
            tracking_policy=self._config.tracking,
            invoice_policy=self._config.invoices,
            choose=self._choose,
        )

    # =========================================================================
    # Invoices
    # =========================================================================

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
        with self._transaction("create_invoice", actor_id) as session:
            return self._invoices(session).create_invoice(
                client_name=client_name,
                client_email=client_email,
                package=package,
                setup_fee=setup_fee,
                monthly_fee=monthly_fee,
                due_date=due_date,
                project_status=project_status,
                actor_id=actor_id,
            )

    def edit_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID | None = None,
        **changes: Any,
    ) -> Invoice:
        with self._transaction("edit_invoice", actor_id) as session:
            return self._invoices(session).edit_invoice(
                invoice_id, actor_id=actor_id, **changes,
            )

    def delete_invoice(self, invoice_id: UUID, actor_id: UUID | None = None) -> None:
        with self._transaction("delete_invoice", actor_id) as session:
            self._invoices(session).delete_invoice(invoice_id, actor_id=actor_id)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        with self._transaction("get_invoice") as session:
            return self._invoices(session).get_invoice(invoice_id)

    def list_invoices(
        self,
        client_email: str | None = None,
        status: PaymentStatus | str | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
    ) -> list[Invoice]:
        with self._transaction("list_invoices") as session:
            return self._invoices(session).list_invoices(
                client_email=client_email,
                status=status,
                due_from=due_from,
                due_to=due_to,
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
        with self._transaction("submit_payment", actor_id) as session:
            return self._invoices(session).submit_payment(
                invoice_id, amount, proof_reference, actor_id=actor_id,
            )

    def get_submission(self, submission_id: UUID) -> PaymentSubmission:
        with self._transaction("get_submission") as session:
            return self._invoices(session).get_submission(submission_id)

    def list_pending_submissions(self) -> list[PaymentSubmission]:
        with self._transaction("list_pending_submissions") as session:
            return self._invoices(session).list_pending_submissions()

    def approve_submission(
        self,
        submission_id: UUID,
        reviewer_id: UUID | None = None,
    ) -> ReconciliationResult:
        """
        Approve a submission: invoice paid, successor created, receipt queued.

        The receipt is delivered after commit when the receipt policy says
        so; ``receipt_dispatched`` reports whether that succeeded.
        """
        with self._transaction("approve_submission", reviewer_id) as session:
            result = ReconciliationWorkflow(session, self._clock).approve(
                submission_id, reviewer_id=reviewer_id,
            )

        if self._config.receipts.dispatch_on_approval:
            delivered = self._dispatch_after_commit(result.receipt_event_id, reviewer_id)
            result = dataclasses.replace(result, receipt_dispatched=delivered)
        return result

    def _dispatch_after_commit(self, event_id: UUID, reviewer_id: UUID | None) -> bool:
        # The approval is committed; a failed delivery leaves the event in
        # the outbox for dispatch_pending_receipts.
        with LogContext.bind(actor_id=reviewer_id, operation="approve_submission"):
            try:
                return self.dispatcher.dispatch(event_id)
            except DBAPIError:
                logger.error(
                    "receipt_dispatch_deferred",
                    extra={"receipt_event_id": str(event_id)},
                    exc_info=True,
                )
                return False

    def reject_submission(
        self,
        submission_id: UUID,
        reviewer_id: UUID | None = None,
    ) -> PaymentSubmission:
        with self._transaction("reject_submission", reviewer_id) as session:
            return ReconciliationWorkflow(session, self._clock).reject(
                submission_id, reviewer_id=reviewer_id,
            )

    def dispatch_pending_receipts(self, limit: int | None = None) -> DispatchSummary:
        with LogContext.bind(correlation_id=uuid4(), operation="dispatch_pending_receipts"):
            try:
                return self.dispatcher.dispatch_pending(limit)
            except DBAPIError as exc:
                logger.error("operation_persistence_failure", exc_info=True)
                raise PersistenceUnavailableError(
                    "dispatch_pending_receipts", str(exc.orig)
                ) from exc

    # =========================================================================
    # Expenses
    # =========================================================================

    def record_expense(
        self,
        category: ExpenseCategory | str,
        description: str,
        amount: Decimal | int | str,
        expense_date: date | str,
        actor_id: UUID | None = None,
    ) -> Expense:
        with self._transaction("record_expense", actor_id) as session:
            return ExpenseService(session, self._clock).record_expense(
                category, description, amount, expense_date, actor_id=actor_id,
            )

    def delete_expense(self, expense_id: UUID, actor_id: UUID | None = None) -> None:
        with self._transaction("delete_expense", actor_id) as session:
            ExpenseService(session, self._clock).delete_expense(expense_id, actor_id=actor_id)

    def list_expenses(
        self,
        year: int | None = None,
        category: ExpenseCategory | str | None = None,
    ) -> list[Expense]:
        with self._transaction("list_expenses") as session:
            return ExpenseService(session, self._clock).list_expenses(year, category)

    # =========================================================================
    # Reports, tracking, reminders
    # =========================================================================

    def compute_report(self, year: int) -> FinancialReport:
        with self._transaction("compute_report") as session:
            return ReportingService(session, self._clock).compute_report(year)

    def lookup_tracking_code(self, tracking_code: str) -> ProjectTrackingView:
        with self._transaction("lookup_tracking_code") as session:
            return self._invoices(session).tracking.lookup(tracking_code)

    def due_reminders(self, today: date | None = None) -> list[PaymentReminder]:
        """Reminders to send today under the configured offsets."""
        today = today or self._clock.today()
        policy = self._config.reminders
        if not policy.offsets:
            return []
        horizon = today + timedelta(days=max(o.days_before for o in policy.offsets))
        with self._transaction("due_reminders") as session:
            candidates = [
                m.to_dto()
                for m in session.execute(
                    select(InvoiceModel).where(
                        InvoiceModel.status == PaymentStatus.PENDING.value,
                        InvoiceModel.due_date.between(today, horizon),
                    )
                ).scalars()
            ]
        reminders = select_due_reminders(candidates, today, policy)
        logger.info(
            "payment_reminders_selected",
            extra={"today": today, "reminder_count": len(reminders)},
        )
        return reminders

    def list_overdue(self, today: date | None = None) -> list[Invoice]:
        with self._transaction("list_overdue") as session:
            return self._invoices(session).list_overdue(today)
