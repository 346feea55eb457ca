"""
Reporting Module.

Yearly revenue, receivables, expenses and net profit, computed on demand
from invoices and expenses.
"""

from billing_modules.reporting.models import (
    CategoryTotal,
    FinancialReport,
    MonthlyRevenue,
)
from billing_modules.reporting.statements import (
    ATTRIBUTION_POLICY,
    compute_report,
    render_report_to_dict,
)

__all__ = [
    "ATTRIBUTION_POLICY",
    "CategoryTotal",
    "FinancialReport",
    "MonthlyRevenue",
    "compute_report",
    "render_report_to_dict",
]
