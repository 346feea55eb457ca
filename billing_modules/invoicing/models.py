"""
Invoicing Domain Models (``billing_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of agency billing: invoices,
payment submissions, receipt events, reconciliation outcomes, the public
project-tracking view and payment reminders.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Produced by the
ORM ``to_dto()`` methods and by the invoicing services; returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class PaymentStatus(Enum):
    """Invoice payment lifecycle states."""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class ProjectStatus(Enum):
    """Delivery progress of the engagement; independent of payment."""
    PENDING = "pending"
    PLANNING = "planning"
    DESIGNING = "designing"
    DEVELOPING = "developing"
    TESTING = "testing"
    COMPLETED = "completed"


class SubmissionStatus(Enum):
    """Payment submission review states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReminderUrgency(Enum):
    """How loudly a due-date reminder should be worded."""
    NOTICE = "notice"
    WARNING = "warning"
    URGENT = "urgent"


@dataclass(frozen=True)
class Invoice:
    """A billing record for one cycle of a client engagement."""
    id: UUID
    client_name: str
    client_email: str
    client_key: str
    package: str
    setup_fee: Decimal
    monthly_fee: Decimal
    due_date: date | None
    status: PaymentStatus
    project_status: ProjectStatus
    created_at: datetime
    updated_at: datetime
    tracking_code: str | None = None
    source_invoice_id: UUID | None = None

    @property
    def total_amount(self) -> Decimal:
        return self.setup_fee + self.monthly_fee

    @property
    def attribution_date(self) -> date:
        """Date the invoice counts toward in yearly reports."""
        if self.due_date is not None:
            return self.due_date
        return self.created_at.date()

    def to_record(self) -> dict[str, Any]:
        """Flat record for document renderers and JSON output."""
        return {
            "id": str(self.id),
            "client_name": self.client_name,
            "client_email": self.client_email,
            "package": self.package,
            "setup_fee": str(self.setup_fee),
            "monthly_fee": str(self.monthly_fee),
            "total_amount": str(self.total_amount),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status.value,
            "project_status": self.project_status.value,
            "tracking_code": self.tracking_code,
            "source_invoice_id": (
                str(self.source_invoice_id) if self.source_invoice_id else None
            ),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class PaymentSubmission:
    """A client's claim to have paid an invoice, with proof attached."""
    id: UUID
    invoice_id: UUID
    amount: Decimal
    proof_reference: str
    status: SubmissionStatus
    submitted_at: datetime
    reviewed_at: datetime | None = None
    reviewer_id: UUID | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "invoice_id": str(self.invoice_id),
            "amount": str(self.amount),
            "proof_reference": self.proof_reference,
            "status": self.status.value,
            "submitted_at": self.submitted_at.isoformat(),
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "reviewer_id": str(self.reviewer_id) if self.reviewer_id else None,
        }


@dataclass(frozen=True)
class ReceiptEvent:
    """A payment receipt waiting for (or past) delivery to the client."""
    id: UUID
    submission_id: UUID
    invoice_id: UUID
    client_name: str
    client_email: str
    package: str
    amount: Decimal
    created_at: datetime
    dispatched_at: datetime | None = None
    attempts: int = 0
    last_error: str | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    """Everything an approval produced, committed as one unit."""
    submission: PaymentSubmission
    paid_invoice: Invoice
    successor: Invoice
    receipt_event_id: UUID
    receipt_dispatched: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "submission": self.submission.to_record(),
            "paid_invoice": self.paid_invoice.to_record(),
            "successor": self.successor.to_record(),
            "receipt_event_id": str(self.receipt_event_id),
            "receipt_dispatched": self.receipt_dispatched,
        }


@dataclass(frozen=True)
class ProjectTrackingView:
    """What a client sees on the public tracker for a tracking code."""
    tracking_code: str
    client_name_masked: str
    package: str
    project_status: ProjectStatus
    started_at: datetime
    last_updated: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "tracking_code": self.tracking_code,
            "client_name": self.client_name_masked,
            "package": self.package,
            "project_status": self.project_status.value,
            "started_at": self.started_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class PaymentReminder:
    """A pending invoice whose due date is a configured number of days away."""
    invoice_id: UUID
    client_name: str
    client_email: str
    amount: Decimal
    due_date: date
    days_until_due: int
    urgency: ReminderUrgency
