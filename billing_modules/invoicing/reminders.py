"""
Payment reminder selection.

Pure function over invoice snapshots: which pending invoices are exactly a
configured number of days from their due date today.  ZERO I/O; delivery
of the reminders belongs to an external collaborator.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from billing_config.schema import ReminderPolicy
from billing_kernel.domain.calendar import days_until
from billing_modules.invoicing.models import (
    Invoice,
    PaymentReminder,
    PaymentStatus,
    ReminderUrgency,
)


def select_due_reminders(
    invoices: Iterable[Invoice],
    today: date,
    policy: ReminderPolicy | None = None,
) -> list[PaymentReminder]:
    """
    Reminders for pending invoices due exactly ``days_before`` days from today.

    Ordered by due date, then invoice id, so repeated calls agree.
    """
    policy = policy or ReminderPolicy()
    reminders: list[PaymentReminder] = []
    for invoice in invoices:
        if invoice.status is not PaymentStatus.PENDING or invoice.due_date is None:
            continue
        remaining = days_until(invoice.due_date, today)
        urgency = policy.urgency_for(remaining)
        if urgency is None:
            continue
        reminders.append(
            PaymentReminder(
                invoice_id=invoice.id,
                client_name=invoice.client_name,
                client_email=invoice.client_email,
                amount=invoice.total_amount,
                due_date=invoice.due_date,
                days_until_due=remaining,
                urgency=ReminderUrgency(urgency),
            )
        )
    reminders.sort(key=lambda r: (r.due_date, str(r.invoice_id)))
    return reminders
