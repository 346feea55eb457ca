"""
Expense Domain Models.

The nouns of the agency's operating costs: one expense record per outlay.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ExpenseCategory(Enum):
    """Closed set of business expense categories."""
    HOSTING = "hosting"
    DOMAIN = "domain"
    SOFTWARE = "software"
    PERSONNEL = "personnel"
    MARKETING = "marketing"
    OTHER = "other"


@dataclass(frozen=True)
class Expense:
    """A single business outlay."""
    id: UUID
    category: ExpenseCategory
    description: str
    amount: Decimal
    expense_date: date
    created_at: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "category": self.category.value,
            "description": self.description,
            "amount": str(self.amount),
            "expense_date": self.expense_date.isoformat(),
            "created_at": self.created_at.isoformat(),
        }
