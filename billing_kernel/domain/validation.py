"""
Input validation helpers for billing operations.

Pure checks with no I/O.  Each helper either returns the normalized value or
raises ``ValidationError`` naming the offending field, so every operation can
validate its whole input before touching the store.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from billing_kernel.exceptions import ValidationError

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Amount columns are Numeric(38, 9).
MAX_AMOUNT_SCALE = 9
MAX_AMOUNT_INTEGER_DIGITS = 38 - MAX_AMOUNT_SCALE


def require_text(value: Any, field: str, *, min_length: int = 1) -> str:
    """Trimmed non-empty string of at least ``min_length`` characters."""
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    text = value.strip()
    if len(text) < min_length:
        if min_length <= 1:
            raise ValidationError(field, "must not be empty")
        raise ValidationError(field, f"must be at least {min_length} characters")
    return text


def require_email(value: Any, field: str = "client_email") -> str:
    """Trimmed email address in the ``local@domain.tld`` shape."""
    text = require_text(value, field)
    if not _EMAIL_RE.match(text):
        raise ValidationError(field, f"'{text}' is not a valid email address")
    return text


def normalize_client_key(email: str) -> str:
    """Client identity used for tracking-code reuse and the one-per-due-date rule."""
    return email.strip().lower()


def _scale(amount: Decimal) -> int:
    """Digits after the decimal point, ignoring trailing zeros."""
    if not amount:
        return 0
    _, digits, exponent = amount.as_tuple()
    while exponent < 0 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    return max(0, -exponent)


def require_amount(
    value: Any,
    field: str,
    *,
    allow_zero: bool = True,
) -> Decimal:
    """
    Decimal amount, non-negative (or strictly positive with allow_zero=False).

    Accepts Decimal, int and numeric strings; floats are rejected.  The value
    must fit the amount columns exactly, so nothing is rounded on store.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(field, "must be a Decimal, int or numeric string")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(field, f"'{value}' is not a number") from None
    else:
        raise ValidationError(field, "must be a Decimal, int or numeric string")

    if not amount.is_finite():
        raise ValidationError(field, "must be a finite number")
    if amount and amount.adjusted() >= MAX_AMOUNT_INTEGER_DIGITS:
        raise ValidationError(
            field, f"must have at most {MAX_AMOUNT_INTEGER_DIGITS} digits before the decimal point"
        )
    if _scale(amount) > MAX_AMOUNT_SCALE:
        raise ValidationError(field, f"must have at most {MAX_AMOUNT_SCALE} decimal places")
    if allow_zero and amount < 0:
        raise ValidationError(field, "must be zero or greater")
    if not allow_zero and amount <= 0:
        raise ValidationError(field, "must be greater than zero")
    return amount


def require_date(value: Any, field: str) -> date:
    """Calendar date from a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(field, f"'{value}' is not an ISO date") from None
    raise ValidationError(field, "must be a date")


def require_choice(value: Any, field: str, choices: type) -> Any:
    """Coerce ``value`` into the Enum ``choices`` or fail naming the options."""
    try:
        return choices(value)
    except ValueError:
        allowed = ", ".join(member.value for member in choices)
        raise ValidationError(field, f"'{value}' is not one of: {allowed}") from None
