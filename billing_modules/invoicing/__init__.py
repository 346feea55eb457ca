"""
Invoicing Module.

Invoices, payment submissions, reconciliation, recurring billing,
tracking codes and payment reminders.
"""

from billing_modules.invoicing.models import (
    Invoice,
    PaymentReminder,
    PaymentStatus,
    PaymentSubmission,
    ProjectStatus,
    ProjectTrackingView,
    ReceiptEvent,
    ReconciliationResult,
    SubmissionStatus,
)
from billing_modules.invoicing.workflows import (
    INVOICE_PAYMENT_WORKFLOW,
    SUBMISSION_WORKFLOW,
)

__all__ = [
    "Invoice",
    "PaymentReminder",
    "PaymentStatus",
    "PaymentSubmission",
    "ProjectStatus",
    "ProjectTrackingView",
    "ReceiptEvent",
    "ReconciliationResult",
    "SubmissionStatus",
    "INVOICE_PAYMENT_WORKFLOW",
    "SUBMISSION_WORKFLOW",
]
