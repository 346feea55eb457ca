"""
Invoicing ORM Models (``billing_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the invoicing module.  Maps the frozen
domain dataclasses from ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``billing_kernel``.

Invariants enforced
-------------------
* One invoice per (client_key, due_date): ``uq_invoices_client_due_date``.
* One successor per source invoice: ``uq_invoices_source_invoice_id``.
* One receipt event per approved submission: ``uq_receipt_events_submission_id``.
* Tracking codes are globally unique: ``uq_tracking_codes_code``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import Base, TrackedBase, as_utc


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Maps to the ``Invoice`` frozen dataclass.

    Guarantees:
        - (client_key, due_date) is unique.  NULL due dates never collide.
        - source_invoice_id is unique, so a source has at most one successor.
        - Deleting a source leaves its successor in place (SET NULL).
        - Monetary fields use Decimal (Numeric(38,9) via type_annotation_map).
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint(
            "client_key", "due_date", name="uq_invoices_client_due_date"
        ),
        UniqueConstraint(
            "source_invoice_id", name="uq_invoices_source_invoice_id"
        ),
        Index("idx_invoices_client_key", "client_key"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_due_date", "due_date"),
        Index("idx_invoices_tracking_code", "tracking_code"),
    )

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_key: Mapped[str] = mapped_column(String(255), nullable=False)
    package: Mapped[str] = mapped_column(String(255), nullable=False)
    setup_fee: Mapped[Decimal] = mapped_column(nullable=False)
    monthly_fee: Mapped[Decimal] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    project_status: Mapped[str] = mapped_column(String(20), default="pending")
    tracking_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.invoicing.models import (
            Invoice,
            PaymentStatus,
            ProjectStatus,
        )

        return Invoice(
            id=self.id,
            client_name=self.client_name,
            client_email=self.client_email,
            client_key=self.client_key,
            package=self.package,
            setup_fee=self.setup_fee,
            monthly_fee=self.monthly_fee,
            due_date=self.due_date,
            status=PaymentStatus(self.status),
            project_status=ProjectStatus(self.project_status),
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            tracking_code=self.tracking_code,
            source_invoice_id=self.source_invoice_id,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.client_key} due {self.due_date}: {self.status}>"


# ---------------------------------------------------------------------------
# 2. PaymentSubmissionModel
# ---------------------------------------------------------------------------


class PaymentSubmissionModel(TrackedBase):
    """
    ORM model for client payment submissions.

    Guarantees:
        - invoice_id FK to invoices.id; submissions go with their invoice.
        - status stored as string enum value; only conditional UPDATEs gated
          on status='pending' move it.
    """

    __tablename__ = "payment_submissions"

    __table_args__ = (
        Index("idx_payment_submissions_invoice_id", "invoice_id"),
        Index("idx_payment_submissions_status", "status"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    proof_reference: Mapped[str] = mapped_column(String(4000), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewer_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.invoicing.models import (
            PaymentSubmission,
            SubmissionStatus,
        )

        return PaymentSubmission(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=self.amount,
            proof_reference=self.proof_reference,
            status=SubmissionStatus(self.status),
            submitted_at=as_utc(self.created_at),
            reviewed_at=as_utc(self.reviewed_at),
            reviewer_id=self.reviewer_id,
        )

    def __repr__(self) -> str:
        return f"<PaymentSubmissionModel {self.id} -> {self.invoice_id}: {self.status}>"


# ---------------------------------------------------------------------------
# 3. ReceiptEventModel (outbox)
# ---------------------------------------------------------------------------


class ReceiptEventModel(Base):
    """
    Outbox row for a payment receipt.

    Written in the approval transaction, delivered after commit.

    Guarantees:
        - submission_id is unique: one receipt per approval.
        - dispatched_at is set exactly once, by a conditional UPDATE.
        - The receipt payload is copied in, so delivery needs no joins.
    """

    __tablename__ = "receipt_events"

    __table_args__ = (
        UniqueConstraint(
            "submission_id", name="uq_receipt_events_submission_id"
        ),
        Index("idx_receipt_events_dispatched_at", "dispatched_at"),
    )

    submission_id: Mapped[UUID] = mapped_column(
        ForeignKey("payment_submissions.id", ondelete="CASCADE"), nullable=False
    )
    invoice_id: Mapped[UUID] = mapped_column(nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    package: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    dispatched_at: Mapped[datetime | None] = mapped_column(nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.invoicing.models import ReceiptEvent

        return ReceiptEvent(
            id=self.id,
            submission_id=self.submission_id,
            invoice_id=self.invoice_id,
            client_name=self.client_name,
            client_email=self.client_email,
            package=self.package,
            amount=self.amount,
            created_at=as_utc(self.created_at),
            dispatched_at=as_utc(self.dispatched_at),
            attempts=self.attempts,
            last_error=self.last_error,
        )

    def __repr__(self) -> str:
        state = "dispatched" if self.dispatched_at else "pending"
        return f"<ReceiptEventModel {self.submission_id}: {state}>"


# ---------------------------------------------------------------------------
# 4. TrackingCodeModel
# ---------------------------------------------------------------------------


class TrackingCodeModel(Base):
    """
    Registry of every tracking code ever issued.

    The unique constraint on ``code`` is what turns a random collision into
    an IntegrityError the allocator can retry on.
    """

    __tablename__ = "tracking_codes"

    __table_args__ = (
        UniqueConstraint("code", name="uq_tracking_codes_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    client_key: Mapped[str] = mapped_column(String(255), nullable=False)
    issued_on: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<TrackingCodeModel {self.code} ({self.client_key})>"
