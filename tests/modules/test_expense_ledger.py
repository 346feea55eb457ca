"""Tests for the expense ledger through the BackOffice facade."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import ExpenseNotFoundError, ValidationError
from billing_modules.expense.models import ExpenseCategory


class TestRecordExpense:

    def test_record_and_list(self, back_office, test_actor_id):
        expense = back_office.record_expense(
            "hosting", "  VPS yearly plan ", Decimal("2400"), date(2025, 3, 1),
            actor_id=test_actor_id,
        )
        assert expense.category is ExpenseCategory.HOSTING
        assert expense.description == "VPS yearly plan"

        listed = back_office.list_expenses()
        assert [e.id for e in listed] == [expense.id]
        assert listed[0].amount == Decimal("2400")

    @pytest.mark.parametrize(
        "category, description, amount, expense_date, field",
        [
            ("travel", "Flight", "100", "2025-01-01", "category"),
            ("other", "", "100", "2025-01-01", "description"),
            ("other", "Refund", "-1", "2025-01-01", "amount"),
            ("other", "Lunch", 12.5, "2025-01-01", "amount"),
            ("other", "Lunch", "12", "yesterday", "expense_date"),
        ],
    )
    def test_validation(self, back_office, category, description, amount, expense_date, field):
        with pytest.raises(ValidationError) as exc_info:
            back_office.record_expense(category, description, amount, expense_date)
        assert exc_info.value.field == field
        assert back_office.list_expenses() == []


class TestListAndDelete:

    def test_filters(self, back_office):
        back_office.record_expense("domain", "acme.test", "15", "2025-01-05")
        back_office.record_expense("software", "Design suite", "600", "2025-12-31")
        back_office.record_expense("software", "Old licence", "300", "2024-12-31")

        assert len(back_office.list_expenses(year=2025)) == 2
        assert [e.description for e in back_office.list_expenses(year=2025, category="software")] == [
            "Design suite"
        ]
        assert [e.expense_date for e in back_office.list_expenses()] == [
            date(2024, 12, 31),
            date(2025, 1, 5),
            date(2025, 12, 31),
        ]

    def test_delete(self, back_office):
        keep = back_office.record_expense("domain", "acme.test", "15", "2025-01-05")
        drop = back_office.record_expense("marketing", "Ads", "500", "2025-02-01")

        back_office.delete_expense(drop.id)

        assert [e.id for e in back_office.list_expenses()] == [keep.id]
        assert back_office.compute_report(2025).expenses == Decimal("15")

    def test_delete_unknown(self, back_office):
        with pytest.raises(ExpenseNotFoundError):
            back_office.delete_expense(uuid4())
