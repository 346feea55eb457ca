"""
Expense ORM Models (``billing_modules.expense.orm``).

Responsibility
--------------
SQLAlchemy persistence model for expenses.  Append-only apart from an
explicit staff delete.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and sibling ``models.py``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, as_utc


class ExpenseModel(TrackedBase):
    """
    ORM model for expenses.

    Guarantees:
        - amount uses Decimal (Numeric(38,9) via type_annotation_map).
        - category stored as string enum value.
    """

    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expenses_expense_date", "expense_date"),
        Index("idx_expenses_category", "category"),
    )

    category: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(4000), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.expense.models import Expense, ExpenseCategory

        return Expense(
            id=self.id,
            category=ExpenseCategory(self.category),
            description=self.description,
            amount=self.amount,
            expense_date=self.expense_date,
            created_at=as_utc(self.created_at),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "ExpenseModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            category=dto.category.value,
            description=dto.description,
            amount=dto.amount,
            expense_date=dto.expense_date,
            created_at=dto.created_at,
            updated_at=dto.created_at,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ExpenseModel {self.category} {self.amount} on {self.expense_date}>"
