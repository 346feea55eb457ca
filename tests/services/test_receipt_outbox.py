"""
Tests for receipt delivery from the outbox.

Invariants verified:
- One receipt event per approval, delivered at most once.
- A notifier failure never undoes a committed approval.
- No database lock is held while the notifier runs.
- Undelivered events are retried by dispatch_pending_receipts until
  max_attempts is used up.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from billing_config.schema import BillingConfigurationSet, ReceiptPolicy
from billing_kernel.db.engine import session_scope
from billing_kernel.exceptions import PersistenceUnavailableError
from billing_modules.invoicing.models import PaymentStatus
from billing_modules.invoicing.notifications import RecordingNotifier
from billing_modules.invoicing.orm import ReceiptEventModel
from billing_services.receipt_dispatcher import ReceiptDispatcher


def _config(**receipts):
    return BillingConfigurationSet(
        config_id="outbox-test", version=1, receipts=ReceiptPolicy(**receipts),
    )


def _events(session_factory):
    with session_scope(session_factory) as session:
        return [m.to_dto() for m in session.execute(select(ReceiptEventModel)).scalars()]


def _approve(office, **invoice_fields):
    invoice = office.create_invoice(
        client_name="Acme Studio",
        client_email=invoice_fields.get("client_email", "ops@acme.test"),
        package="Company profile website",
        setup_fee=Decimal("10000"),
        monthly_fee=Decimal("2000"),
        due_date=invoice_fields.get("due_date", date(2025, 1, 15)),
    )
    submission = office.submit_payment(invoice.id, Decimal("12000"), "s3://slip.png")
    return office.approve_submission(submission.id)


class TestDeliveryOnApproval:

    def test_event_contents(self, back_office, notifier, session_factory):
        result = _approve(back_office)

        assert result.receipt_dispatched is True
        [event] = notifier.sent
        assert event.id == result.receipt_event_id
        assert event.submission_id == result.submission.id
        assert event.client_email == "ops@acme.test"
        assert event.package == "Company profile website"
        assert event.amount == Decimal("12000")

        [stored] = _events(session_factory)
        assert stored.dispatched_at is not None
        assert stored.attempts == 1

    def test_already_delivered_is_skipped(self, back_office, notifier):
        result = _approve(back_office)

        assert back_office.dispatcher.dispatch(result.receipt_event_id) is False
        assert back_office.dispatch_pending_receipts().delivered == 0
        assert len(notifier.sent) == 1

    def test_deferred_delivery(self, make_back_office):
        notifier = RecordingNotifier()
        office = make_back_office(config=_config(dispatch_on_approval=False), notifier=notifier)

        result = _approve(office)

        assert result.receipt_dispatched is False
        assert notifier.sent == []
        summary = office.dispatch_pending_receipts()
        assert (summary.delivered, summary.failed) == (1, 0)
        assert [e.id for e in notifier.sent] == [result.receipt_event_id]


class TestNotifierFailure:

    def test_failure_keeps_approval(self, make_back_office, session_factory, captured_logs):
        notifier = RecordingNotifier(fail_times=1)
        office = make_back_office(notifier=notifier)

        result = _approve(office)

        assert result.receipt_dispatched is False
        assert office.get_invoice(result.paid_invoice.id).status is PaymentStatus.PAID
        [stored] = _events(session_factory)
        assert stored.dispatched_at is None
        assert stored.attempts == 1
        assert "receipt sink unavailable" in stored.last_error

        failures = [r for r in captured_logs() if r["message"] == "receipt_dispatch_failed"]
        assert failures[0]["exc_code"] == "NOTIFICATION_DELIVERY_FAILED"

        summary = office.dispatch_pending_receipts()
        assert (summary.delivered, summary.failed) == (1, 0)
        assert [e.id for e in notifier.sent] == [result.receipt_event_id]
        assert office.dispatch_pending_receipts().delivered == 0

    def test_gives_up_after_max_attempts(self, make_back_office, session_factory):
        notifier = RecordingNotifier(fail_times=10)
        office = make_back_office(config=_config(max_attempts=2), notifier=notifier)

        _approve(office)
        assert office.dispatch_pending_receipts().failed == 1
        summary = office.dispatch_pending_receipts()

        assert (summary.delivered, summary.failed) == (0, 0)
        [stored] = _events(session_factory)
        assert stored.attempts == 2
        assert stored.dispatched_at is None
        assert notifier.sent == []

    def test_sweep_is_oldest_first_and_batched(
        self, make_back_office, session_factory, deterministic_clock,
    ):
        office = make_back_office(config=_config(dispatch_on_approval=False, batch_size=2))
        first = _approve(office, client_email="a@clients.test")
        deterministic_clock.advance(60)
        second = _approve(office, client_email="b@clients.test")
        deterministic_clock.advance(60)
        _approve(office, client_email="c@clients.test")

        recorder = RecordingNotifier()
        dispatcher = ReceiptDispatcher(
            session_factory, recorder, clock=deterministic_clock, policy=office.config.receipts,
        )
        summary = dispatcher.dispatch_pending()

        assert summary.delivered == 2
        assert [e.id for e in recorder.sent] == [first.receipt_event_id, second.receipt_event_id]
        assert dispatcher.dispatch_pending(limit=10).delivered == 1


class _ExpenseWritingNotifier:
    """Notifier whose delivery records an expense through the same store."""

    def __init__(self):
        self.office = None
        self.sent = []
        self.expenses = []

    def send_receipt(self, event):
        self.expenses.append(
            self.office.record_expense("hosting", f"receipt {event.id}", Decimal("5"), date(2025, 1, 2))
        )
        self.sent.append(event)


class TestDeliveryOutsideTransaction:

    def test_other_writes_proceed_during_send(self, make_back_office, session_factory):
        notifier = _ExpenseWritingNotifier()
        office = make_back_office(notifier=notifier)
        notifier.office = office

        result = _approve(office)

        assert result.receipt_dispatched is True
        assert [e.id for e in notifier.sent] == [result.receipt_event_id]
        assert [e.id for e in office.list_expenses(2025)] == [notifier.expenses[0].id]
        [stored] = _events(session_factory)
        assert stored.dispatched_at is not None
        assert stored.attempts == 1

    def test_event_is_claimed_while_sending(self, make_back_office, session_factory):
        seen = []

        class _Inspecting:
            def send_receipt(self, event):
                seen.extend(_events(session_factory))

        office = make_back_office(notifier=_Inspecting())
        _approve(office)

        [claimed] = seen
        assert claimed.dispatched_at is not None
        assert claimed.attempts == 1


class TestOutboxStoreUnavailable:

    @pytest.fixture
    def broken_factory(self, tmp_path):
        # A database file with no tables: every statement fails.
        engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        yield sessionmaker(bind=engine, expire_on_commit=False)
        engine.dispose()

    def test_approval_survives_store_failure(
        self, make_back_office, broken_factory, session_factory, deterministic_clock, captured_logs,
    ):
        notifier = RecordingNotifier()
        office = make_back_office(notifier=notifier)
        office.dispatcher = ReceiptDispatcher(
            broken_factory, notifier, clock=deterministic_clock, policy=office.config.receipts,
        )

        result = _approve(office)

        assert result.receipt_dispatched is False
        assert office.get_invoice(result.paid_invoice.id).status is PaymentStatus.PAID
        assert notifier.sent == []
        [stored] = _events(session_factory)
        assert stored.dispatched_at is None
        assert stored.attempts == 0

        deferred = [r for r in captured_logs() if r["message"] == "receipt_dispatch_deferred"]
        assert deferred[0]["receipt_event_id"] == str(result.receipt_event_id)
        assert deferred[0]["operation"] == "approve_submission"

    def test_sweep_raises_typed_error(self, make_back_office, broken_factory, deterministic_clock):
        office = make_back_office()
        office.dispatcher = ReceiptDispatcher(
            broken_factory, office.notifier, clock=deterministic_clock, policy=office.config.receipts,
        )

        with pytest.raises(PersistenceUnavailableError) as exc_info:
            office.dispatch_pending_receipts()
        assert exc_info.value.operation == "dispatch_pending_receipts"
