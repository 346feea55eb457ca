"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the billing operations (the admin UI, the CLI, an HTTP layer)
must be able to tell "fix your input" apart from "someone else already
resolved this" apart from "the database is down".  Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- ValidationError
    |
    +-- ConflictError
    |   +-- SubmissionAlreadyReviewedError
    |   +-- InvoiceNotPayableError
    |   +-- InvoiceNotPaidError
    |   +-- SuccessorAlreadyGeneratedError
    |   +-- DuplicateInvoiceError
    |   +-- InvoiceLockedError
    |   +-- TrackingCodeImmutableError
    |   +-- TrackingCodeExhaustedError
    |   +-- InvalidTransitionError
    |
    +-- NotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- SubmissionNotFoundError
    |   +-- ExpenseNotFoundError
    |   +-- TrackingCodeNotFoundError
    |
    +-- DependencyError
        +-- PersistenceUnavailableError
        +-- NotificationDeliveryError

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        office.approve_submission(submission_id)
    except ConflictError as e:
        # Another reviewer got there first, or the invoice is no longer
        # pending.  Never retried automatically.
        api_response(409, code=e.code)
    except NotFoundError as e:
        api_response(404, code=e.code)
    except ValidationError as e:
        api_response(422, code=e.code, field=e.field)
    except DependencyError as e:
        api_response(503, code=e.code)

All four categories are recoverable by the caller.  Nothing in this package
is fatal to the process.
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Validation


class ValidationError(BillingKernelError):
    """Input is malformed or out of range.  Raised before any mutation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Conflict (state-machine preconditions)


class ConflictError(BillingKernelError):
    """Base exception for state-machine precondition violations."""

    code: str = "CONFLICT"


class SubmissionAlreadyReviewedError(ConflictError):
    """Payment submission has already been approved or rejected."""

    code: str = "SUBMISSION_ALREADY_REVIEWED"

    def __init__(self, submission_id: str, status: str):
        self.submission_id = submission_id
        self.status = status
        super().__init__(
            f"Payment submission {submission_id} is already {status}"
        )


class InvoiceNotPayableError(ConflictError):
    """Invoice is not pending, so it cannot accept or approve a payment."""

    code: str = "INVOICE_NOT_PAYABLE"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(
            f"Invoice {invoice_id} is {status}, expected pending"
        )


class InvoiceNotPaidError(ConflictError):
    """A successor can only be generated from a paid invoice."""

    code: str = "INVOICE_NOT_PAID"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(
            f"Invoice {invoice_id} is {status}; successors are generated "
            f"from paid invoices only"
        )


class SuccessorAlreadyGeneratedError(ConflictError):
    """The next billing cycle for this invoice already exists."""

    code: str = "SUCCESSOR_ALREADY_GENERATED"

    def __init__(self, source_invoice_id: str, successor_id: str):
        self.source_invoice_id = source_invoice_id
        self.successor_id = successor_id
        super().__init__(
            f"Invoice {source_invoice_id} already has successor {successor_id}"
        )


class DuplicateInvoiceError(ConflictError):
    """An invoice already exists for this client and due date."""

    code: str = "DUPLICATE_INVOICE"

    def __init__(self, client_key: str, due_date: str):
        self.client_key = client_key
        self.due_date = due_date
        super().__init__(
            f"Invoice already exists for client {client_key} due {due_date}"
        )


class InvoiceLockedError(ConflictError):
    """Financial fields of a paid invoice cannot be edited."""

    code: str = "INVOICE_LOCKED"

    def __init__(self, invoice_id: str, field: str):
        self.invoice_id = invoice_id
        self.field = field
        super().__init__(
            f"Invoice {invoice_id} is paid; {field} can no longer change"
        )


class TrackingCodeImmutableError(ConflictError):
    """Tracking codes never change once assigned."""

    code: str = "TRACKING_CODE_IMMUTABLE"

    def __init__(self, invoice_id: str, tracking_code: str | None):
        self.invoice_id = invoice_id
        self.tracking_code = tracking_code
        super().__init__(
            f"Tracking code {tracking_code} on invoice {invoice_id} is immutable"
        )


class TrackingCodeExhaustedError(ConflictError):
    """Every synthesized tracking code collided with an existing one."""

    code: str = "TRACKING_CODE_EXHAUSTED"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a unique tracking code after {attempts} attempts"
        )


class InvalidTransitionError(ConflictError):
    """No transition exists for this action from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, from_state: str, action: str):
        self.workflow = workflow
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"{workflow}: action '{action}' is not allowed from '{from_state}'"
        )


# Not found


class NotFoundError(BillingKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class SubmissionNotFoundError(NotFoundError):
    """Payment submission with given ID was not found."""

    code: str = "SUBMISSION_NOT_FOUND"

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Payment submission not found: {submission_id}")


class ExpenseNotFoundError(NotFoundError):
    """Expense with given ID was not found."""

    code: str = "EXPENSE_NOT_FOUND"

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


class TrackingCodeNotFoundError(NotFoundError):
    """No invoice carries the given tracking code."""

    code: str = "TRACKING_CODE_NOT_FOUND"

    def __init__(self, tracking_code: str):
        self.tracking_code = tracking_code
        super().__init__(f"No project found for tracking code: {tracking_code}")


# Dependency failures


class DependencyError(BillingKernelError):
    """Base exception for unavailable collaborators."""

    code: str = "DEPENDENCY_FAILURE"


class PersistenceUnavailableError(DependencyError):
    """The backing store rejected or dropped the operation."""

    code: str = "PERSISTENCE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence failure during {operation}: {reason}")


class NotificationDeliveryError(DependencyError):
    """The receipt notifier could not deliver an event."""

    code: str = "NOTIFICATION_DELIVERY_FAILED"

    def __init__(self, event_id: str, reason: str):
        self.event_id = event_id
        self.reason = reason
        super().__init__(f"Receipt event {event_id} not delivered: {reason}")
