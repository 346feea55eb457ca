"""
Pure financial rollup functions.

These functions turn invoice and expense snapshots into the yearly
financial report.  ZERO I/O.  ZERO side effects.

All monetary values are Decimal.  All inputs/outputs are frozen dataclasses.

Functions in this module follow the billing_kernel/domain/ purity convention:
- No database access
- No clock access
- No file I/O
- No memoization: same inputs always produce same outputs
- One linear pass per input collection
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from billing_kernel.db.types import ZERO, round_money
from billing_modules.expense.models import Expense, ExpenseCategory
from billing_modules.invoicing.models import Invoice, PaymentStatus
from billing_modules.reporting.models import (
    CategoryTotal,
    FinancialReport,
    MonthlyRevenue,
)

# Revenue and receivables are attributed to the invoice's due date, falling
# back to its creation date.  This is NOT the date money was received.
ATTRIBUTION_POLICY = "due_date_else_created_at"


def attribution_date(invoice: Invoice) -> date:
    """The date an invoice counts toward under ``ATTRIBUTION_POLICY``."""
    return invoice.attribution_date


def compute_report(
    year: int,
    invoices: Iterable[Invoice],
    expenses: Iterable[Expense],
) -> FinancialReport:
    """
    Roll invoices and expenses up into the report for ``year``.

    - revenue: setup + monthly over paid invoices attributed to ``year``
    - accounts_receivable: the same over pending invoices
    - expenses: amounts of expenses dated in ``year``
    - net_profit: revenue - expenses

    Cancelled invoices are ignored.
    """
    revenue = ZERO
    receivable = ZERO
    paid_count = 0
    pending_count = 0
    by_month: dict[int, Decimal] = defaultdict(lambda: ZERO)

    for invoice in invoices:
        attributed = attribution_date(invoice)
        if attributed.year != year:
            continue
        if invoice.status is PaymentStatus.PAID:
            revenue += invoice.total_amount
            by_month[attributed.month] += invoice.total_amount
            paid_count += 1
        elif invoice.status is PaymentStatus.PENDING:
            receivable += invoice.total_amount
            pending_count += 1

    spent = ZERO
    expense_count = 0
    by_category: dict[ExpenseCategory, Decimal] = defaultdict(lambda: ZERO)
    count_by_category: dict[ExpenseCategory, int] = defaultdict(int)

    for expense in expenses:
        if expense.expense_date.year != year:
            continue
        spent += expense.amount
        expense_count += 1
        by_category[expense.category] += expense.amount
        count_by_category[expense.category] += 1

    revenue = round_money(revenue)
    spent = round_money(spent)

    return FinancialReport(
        year=year,
        attribution_policy=ATTRIBUTION_POLICY,
        revenue=revenue,
        accounts_receivable=round_money(receivable),
        expenses=spent,
        net_profit=revenue - spent,
        paid_invoice_count=paid_count,
        pending_invoice_count=pending_count,
        expense_count=expense_count,
        revenue_by_month=tuple(
            MonthlyRevenue(month=m, revenue=round_money(by_month[m]))
            for m in range(1, 13)
        ),
        expenses_by_category=tuple(
            CategoryTotal(
                category=category,
                amount=round_money(by_category[category]),
                count=count_by_category[category],
            )
            for category in ExpenseCategory
            if count_by_category[category]
        ),
    )


def render_report_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert a report dataclass to a plain dict for JSON serialization.

    Handles:
    - Decimal -> str (preserving precision)
    - UUID -> str
    - date -> ISO format string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    - None preserved
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_report_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_report_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_report_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
