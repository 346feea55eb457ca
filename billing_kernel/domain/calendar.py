"""
Billing calendar arithmetic.

Pure date helpers used by the recurring billing generator and the reminder
selector.  ZERO I/O.
"""

from datetime import date

from dateutil.relativedelta import relativedelta


def advance_one_month(value: date) -> date:
    """
    Return the same day-of-month one calendar month later.

    Days that do not exist in the target month clamp to its last day:
    2024-01-31 -> 2024-02-29, 2023-01-31 -> 2023-02-28, 2024-03-31 -> 2024-04-30.
    """
    return value + relativedelta(months=1)


def days_until(target: date, today: date) -> int:
    """Whole days from ``today`` to ``target`` (negative when past)."""
    return (target - today).days
