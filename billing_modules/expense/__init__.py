"""
Expense Module.

Business outlays (hosting, domains, software, personnel, marketing) that
feed the yearly financial report.
"""

from billing_modules.expense.models import Expense, ExpenseCategory

__all__ = [
    "Expense",
    "ExpenseCategory",
]
