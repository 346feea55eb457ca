"""
Invoicing Workflows.

State machines for payment submissions and invoice payment status.
"""

from billing_kernel.domain.workflow import Guard, Transition, Workflow
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

INVOICE_PENDING = Guard(
    name="invoice_pending",
    description="Referenced invoice is still pending",
)

SUBMISSION_APPROVED = Guard(
    name="submission_approved",
    description="A payment submission for the invoice was approved",
)


# -----------------------------------------------------------------------------
# Payment Submission Workflow
# -----------------------------------------------------------------------------

SUBMISSION_WORKFLOW = Workflow(
    name="payment_submission",
    description="Staff review of client payment proof",
    initial_state="pending",
    states=("pending", "approved", "rejected"),
    transitions=(
        Transition("pending", "approved", action="approve", guard=INVOICE_PENDING),
        Transition("pending", "rejected", action="reject"),
    ),
    terminal_states=("approved", "rejected"),
)

logger.info(
    "submission_workflow_registered",
    extra={
        "workflow_name": SUBMISSION_WORKFLOW.name,
        "state_count": len(SUBMISSION_WORKFLOW.states),
        "transition_count": len(SUBMISSION_WORKFLOW.transitions),
        "initial_state": SUBMISSION_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Invoice Payment Workflow
# -----------------------------------------------------------------------------

INVOICE_PAYMENT_WORKFLOW = Workflow(
    name="invoice_payment",
    description="Payment status of a single invoice",
    initial_state="pending",
    states=("pending", "paid", "cancelled"),
    transitions=(
        Transition("pending", "paid", action="record_payment", guard=SUBMISSION_APPROVED),
        Transition("pending", "cancelled", action="cancel"),
        Transition("cancelled", "pending", action="reopen"),
    ),
    terminal_states=("paid",),
)

logger.info(
    "invoice_payment_workflow_registered",
    extra={
        "workflow_name": INVOICE_PAYMENT_WORKFLOW.name,
        "state_count": len(INVOICE_PAYMENT_WORKFLOW.states),
        "transition_count": len(INVOICE_PAYMENT_WORKFLOW.transitions),
        "initial_state": INVOICE_PAYMENT_WORKFLOW.initial_state,
    },
)

# Manual edits reach a target status only through these actions; "paid" has
# no entry because only an approved submission marks an invoice paid.
EDIT_ACTIONS: dict[str, str] = {
    "cancelled": "cancel",
    "pending": "reopen",
}
