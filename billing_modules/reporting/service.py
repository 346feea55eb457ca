"""
Reporting Module Service.

Loads invoice and expense snapshots in one read and hands them to the pure
rollup in ``statements.py``.  Nothing is cached between calls.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select

from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_modules.expense.orm import ExpenseModel
from billing_modules.invoicing.orm import InvoiceModel
from billing_modules.reporting.models import FinancialReport
from billing_modules.reporting.statements import compute_report

logger = get_logger("modules.reporting.service")


class ReportingService(BaseService):
    """Read-only: computes reports from the current store contents."""

    def compute_report(self, year: int) -> FinancialReport:
        # Undated invoices may attribute to any year through created_at,
        # so only dated invoices are narrowed in SQL.
        year_start, year_end = date(year, 1, 1), date(year, 12, 31)
        invoices = [
            m.to_dto()
            for m in self.session.execute(
                select(InvoiceModel).where(
                    (InvoiceModel.due_date.is_(None))
                    | InvoiceModel.due_date.between(year_start, year_end)
                )
            ).scalars()
        ]
        expenses = [
            m.to_dto()
            for m in self.session.execute(
                select(ExpenseModel).where(
                    ExpenseModel.expense_date.between(year_start, year_end)
                )
            ).scalars()
        ]

        report = compute_report(year, invoices, expenses)
        logger.info(
            "financial_report_computed",
            extra={
                "year": year,
                "revenue": report.revenue,
                "accounts_receivable": report.accounts_receivable,
                "expenses": report.expenses,
                "net_profit": report.net_profit,
                "invoice_count": len(invoices),
                "expense_count": report.expense_count,
            },
        )
        return report
