"""
Expense Module Service.

Records, lists and deletes business expenses.  Flushes only; the caller
owns the transaction.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select

from billing_kernel.domain.validation import (
    require_amount,
    require_choice,
    require_date,
    require_text,
)
from billing_kernel.exceptions import ExpenseNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_modules.expense.models import Expense, ExpenseCategory
from billing_modules.expense.orm import ExpenseModel

logger = get_logger("modules.expense.service")


class ExpenseService(BaseService):
    """Expense ledger operations."""

    def record_expense(
        self,
        category: ExpenseCategory | str,
        description: str,
        amount: Decimal | int | str,
        expense_date: date | str,
        actor_id: UUID | None = None,
    ) -> Expense:
        """
        Append one expense.

        Raises:
            ValidationError: unknown category, empty description,
                negative amount or malformed date.
        """
        expense = Expense(
            id=uuid4(),
            category=require_choice(category, "category", ExpenseCategory),
            description=require_text(description, "description"),
            amount=require_amount(amount, "amount"),
            expense_date=require_date(expense_date, "expense_date"),
            created_at=self.clock.now_utc(),
        )
        self.session.add(ExpenseModel.from_dto(expense, created_by_id=actor_id))
        self.session.flush()

        logger.info(
            "expense_recorded",
            extra={
                "expense_id": str(expense.id),
                "category": expense.category.value,
                "amount": expense.amount,
                "expense_date": expense.expense_date,
            },
        )
        return expense

    def delete_expense(self, expense_id: UUID, actor_id: UUID | None = None) -> None:
        model = self.session.get(ExpenseModel, expense_id)
        if model is None:
            raise ExpenseNotFoundError(str(expense_id))
        self.session.delete(model)
        self.session.flush()
        logger.info(
            "expense_deleted",
            extra={
                "expense_id": str(expense_id),
                "deleted_by": str(actor_id) if actor_id else None,
            },
        )

    def list_expenses(
        self,
        year: int | None = None,
        category: ExpenseCategory | str | None = None,
    ) -> list[Expense]:
        """Expenses, optionally for one calendar year and category, by date."""
        stmt = select(ExpenseModel)
        if year is not None:
            stmt = stmt.where(
                ExpenseModel.expense_date >= date(year, 1, 1),
                ExpenseModel.expense_date <= date(year, 12, 31),
            )
        if category is not None:
            stmt = stmt.where(
                ExpenseModel.category
                == require_choice(category, "category", ExpenseCategory).value
            )
        stmt = stmt.order_by(ExpenseModel.expense_date.asc(), ExpenseModel.id.asc())
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
