"""
Tests for InvoiceService: input validation, manual edit rules and the
payment submission queue.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_config.schema import InvoicePolicy
from billing_kernel.exceptions import (
    DuplicateInvoiceError,
    InvalidTransitionError,
    InvoiceLockedError,
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    ValidationError,
)
from billing_modules.invoicing.models import (
    PaymentStatus,
    ProjectStatus,
    SubmissionStatus,
)
from billing_modules.invoicing.orm import InvoiceModel
from billing_modules.invoicing.service import InvoiceService


@pytest.fixture
def service(session, deterministic_clock):
    return InvoiceService(session, deterministic_clock)


def _fields(**overrides):
    fields = {
        "client_name": "Acme Studio",
        "client_email": "ops@acme.test",
        "package": "Company profile website",
        "setup_fee": Decimal("10000"),
        "monthly_fee": Decimal("2000"),
        "due_date": date(2025, 1, 15),
    }
    fields.update(overrides)
    return fields


def _mark_paid(session, invoice_id):
    session.get(InvoiceModel, invoice_id).status = PaymentStatus.PAID.value
    session.flush()


class TestCreateValidation:

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"client_name": ""}, "client_name"),
            ({"client_name": "A"}, "client_name"),
            ({"client_email": "not-an-email"}, "client_email"),
            ({"client_email": "  "}, "client_email"),
            ({"package": ""}, "package"),
            ({"setup_fee": Decimal("-1")}, "setup_fee"),
            ({"monthly_fee": "abc"}, "monthly_fee"),
            ({"monthly_fee": 2000.5}, "monthly_fee"),
            ({"due_date": None}, "due_date"),
            ({"due_date": "15/01/2025"}, "due_date"),
            ({"project_status": "shipped"}, "project_status"),
        ],
    )
    def test_rejects_bad_field(self, service, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            service.create_invoice(**_fields(**overrides))
        assert exc_info.value.field == field
        assert service.list_invoices() == []

    def test_normalizes_input(self, service):
        invoice = service.create_invoice(
            **_fields(
                client_name="  Acme Studio ",
                client_email=" Ops@Acme.TEST ",
                setup_fee="10000.50",
                monthly_fee=2000,
                due_date="2025-01-15",
                project_status="planning",
            )
        )
        assert invoice.client_name == "Acme Studio"
        assert invoice.client_email == "Ops@Acme.TEST"
        assert invoice.client_key == "ops@acme.test"
        assert invoice.total_amount == Decimal("12000.50")
        assert invoice.due_date == date(2025, 1, 15)
        assert invoice.project_status is ProjectStatus.PLANNING
        assert invoice.status is PaymentStatus.PENDING

    def test_undated_invoice_when_policy_allows(self, session, deterministic_clock):
        service = InvoiceService(
            session,
            deterministic_clock,
            invoice_policy=InvoicePolicy(require_due_date=False),
        )
        first = service.create_invoice(**_fields(due_date=None))
        second = service.create_invoice(**_fields(due_date=None))

        assert first.due_date is None
        assert first.attribution_date == date(2025, 1, 1)
        assert second.tracking_code == first.tracking_code

    def test_zero_fees_allowed(self, service):
        invoice = service.create_invoice(**_fields(setup_fee=0, monthly_fee=0))
        assert invoice.total_amount == Decimal("0")


class TestOneInvoicePerClientAndDueDate:

    def test_duplicate_rejected(self, service):
        service.create_invoice(**_fields())
        with pytest.raises(DuplicateInvoiceError):
            service.create_invoice(**_fields(client_email="OPS@acme.test"))

    def test_same_date_other_client_allowed(self, service):
        service.create_invoice(**_fields())
        other = service.create_invoice(**_fields(client_email="hello@bakery.test"))
        assert other.due_date == date(2025, 1, 15)

    def test_edit_into_taken_slot(self, service):
        service.create_invoice(**_fields())
        february = service.create_invoice(**_fields(due_date=date(2025, 2, 15)))
        with pytest.raises(DuplicateInvoiceError):
            service.edit_invoice(february.id, due_date=date(2025, 1, 15))


class TestEditRules:

    def test_plain_edit(self, service, test_actor_id):
        invoice = service.create_invoice(**_fields())
        edited = service.edit_invoice(
            invoice.id,
            actor_id=test_actor_id,
            package="E-commerce website",
            monthly_fee="2500",
            project_status=ProjectStatus.DEVELOPING,
        )
        assert edited.package == "E-commerce website"
        assert edited.monthly_fee == Decimal("2500")
        assert edited.project_status is ProjectStatus.DEVELOPING
        assert edited.tracking_code == invoice.tracking_code

    def test_unknown_field(self, service):
        invoice = service.create_invoice(**_fields())
        with pytest.raises(ValidationError) as exc_info:
            service.edit_invoice(invoice.id, client_key="someone@else.test")
        assert exc_info.value.field == "client_key"

    def test_invalid_value_changes_nothing(self, service):
        invoice = service.create_invoice(**_fields())
        with pytest.raises(ValidationError):
            service.edit_invoice(invoice.id, package="Shop", setup_fee="-5")
        assert service.get_invoice(invoice.id).package == "Company profile website"

    def test_cancel_and_reopen(self, service):
        invoice = service.create_invoice(**_fields())
        cancelled = service.edit_invoice(invoice.id, status="cancelled")
        assert cancelled.status is PaymentStatus.CANCELLED
        reopened = service.edit_invoice(invoice.id, status="pending")
        assert reopened.status is PaymentStatus.PENDING

    def test_cannot_mark_paid_by_edit(self, service):
        invoice = service.create_invoice(**_fields())
        with pytest.raises(InvalidTransitionError):
            service.edit_invoice(invoice.id, status="paid")

    def test_cannot_cancel_paid_invoice(self, session, service):
        invoice = service.create_invoice(**_fields())
        _mark_paid(session, invoice.id)
        with pytest.raises(InvalidTransitionError):
            service.edit_invoice(invoice.id, status="cancelled")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("setup_fee", Decimal("1")),
            ("monthly_fee", Decimal("1")),
            ("due_date", date(2025, 3, 1)),
            ("client_email", "billing@acme.test"),
        ],
    )
    def test_paid_invoice_financials_locked(self, session, service, field, value):
        invoice = service.create_invoice(**_fields())
        _mark_paid(session, invoice.id)
        with pytest.raises(InvoiceLockedError) as exc_info:
            service.edit_invoice(invoice.id, **{field: value})
        assert exc_info.value.field == field

    def test_paid_invoice_project_status_still_editable(self, session, service):
        invoice = service.create_invoice(**_fields())
        _mark_paid(session, invoice.id)
        edited = service.edit_invoice(
            invoice.id, project_status="completed", monthly_fee=Decimal("2000"),
        )
        assert edited.project_status is ProjectStatus.COMPLETED
        assert edited.status is PaymentStatus.PAID

    def test_missing_invoice(self, service):
        with pytest.raises(InvoiceNotFoundError):
            service.edit_invoice(uuid4(), package="Anything")


class TestSubmissions:

    def test_submit_payment(self, service, test_actor_id):
        invoice = service.create_invoice(**_fields())
        submission = service.submit_payment(
            invoice.id, "12000", " s3://slips/1.png ", actor_id=test_actor_id,
        )
        assert submission.status is SubmissionStatus.PENDING
        assert submission.amount == Decimal("12000")
        assert submission.proof_reference == "s3://slips/1.png"
        assert service.list_pending_submissions() == [submission]
        assert service.list_submissions_for(invoice.id) == [submission]

    @pytest.mark.parametrize(
        "amount, proof, field",
        [
            (Decimal("0"), "s3://a.png", "amount"),
            (Decimal("-10"), "s3://a.png", "amount"),
            (Decimal("100"), "", "proof_reference"),
        ],
    )
    def test_bad_submission(self, service, amount, proof, field):
        invoice = service.create_invoice(**_fields())
        with pytest.raises(ValidationError) as exc_info:
            service.submit_payment(invoice.id, amount, proof)
        assert exc_info.value.field == field
        assert service.list_pending_submissions() == []

    def test_unknown_invoice(self, service):
        with pytest.raises(InvoiceNotFoundError):
            service.submit_payment(uuid4(), Decimal("100"), "s3://a.png")

    def test_cancelled_invoice_not_payable(self, service):
        invoice = service.create_invoice(**_fields())
        service.edit_invoice(invoice.id, status="cancelled")
        with pytest.raises(InvoiceNotPayableError):
            service.submit_payment(invoice.id, Decimal("12000"), "s3://a.png")

    def test_partial_amount_is_queued_with_warning(self, service, captured_logs):
        invoice = service.create_invoice(**_fields())
        submission = service.submit_payment(invoice.id, Decimal("5000"), "s3://a.png")

        assert submission.amount == Decimal("5000")
        warnings = [r for r in captured_logs() if r["message"] == "submission_amount_mismatch"]
        assert len(warnings) == 1
        assert warnings[0]["claimed"] == "5000"


class TestQueries:

    def test_list_filters(self, service):
        service.create_invoice(**_fields())
        feb = service.create_invoice(**_fields(due_date=date(2025, 2, 15)))
        service.create_invoice(**_fields(client_email="hello@bakery.test"))
        service.edit_invoice(feb.id, status="cancelled")

        assert len(service.list_invoices(client_email="OPS@acme.test")) == 2
        assert [i.id for i in service.list_invoices(status="cancelled")] == [feb.id]
        in_range = service.list_invoices(due_from=date(2025, 2, 1), due_to=date(2025, 2, 28))
        assert [i.id for i in in_range] == [feb.id]

    def test_list_overdue(self, service):
        january = service.create_invoice(**_fields())
        service.create_invoice(**_fields(due_date=date(2025, 3, 15)))
        cancelled = service.create_invoice(**_fields(due_date=date(2025, 1, 10)))
        service.edit_invoice(cancelled.id, status="cancelled")

        overdue = service.list_overdue(today=date(2025, 2, 1))
        assert [i.id for i in overdue] == [january.id]
