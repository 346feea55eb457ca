"""
Financial Reporting Domain Models (``billing_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for the yearly financial report and its
breakdowns.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Produced by
``statements.compute_report`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``net_profit == revenue - expenses``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from billing_modules.expense.models import ExpenseCategory


@dataclass(frozen=True)
class MonthlyRevenue:
    """Paid revenue attributed to one calendar month."""

    month: int
    revenue: Decimal


@dataclass(frozen=True)
class CategoryTotal:
    """Expenses of one category within the report year."""

    category: ExpenseCategory
    amount: Decimal
    count: int


@dataclass(frozen=True)
class FinancialReport:
    """Yearly rollup of paid and pending invoices and expenses."""

    year: int
    attribution_policy: str
    revenue: Decimal
    accounts_receivable: Decimal
    expenses: Decimal
    net_profit: Decimal
    paid_invoice_count: int
    pending_invoice_count: int
    expense_count: int
    revenue_by_month: tuple[MonthlyRevenue, ...]
    expenses_by_category: tuple[CategoryTotal, ...]

    def __post_init__(self):
        if self.net_profit != self.revenue - self.expenses:
            raise ValueError(
                f"net_profit ({self.net_profit}) must equal revenue ({self.revenue}) "
                f"minus expenses ({self.expenses})"
            )
