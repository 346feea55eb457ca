"""
Module: billing_kernel.db.types
Responsibility: Money helpers shared by the ORM-backed services and the pure
    statement code.
Architecture position: Kernel > DB.  May be imported by domain/, services/
    and the billing modules.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the billing kernel.  Monetary amounts use Decimal
      stored as Numeric(38, 9) (see Base.type_annotation_map) and are rounded
      only through round_money().
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the only rounding function used for report totals.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
