"""
Module: finance_kernel.db.types
Responsibility: Annotated column type aliases and the money helpers every
    model and service shares, so amounts are stored and rounded one way.
Architecture position: Kernel > DB.  May be imported by models/, services/,
    selectors/, engines and modules.  MUST NOT import from any of those.

Invariants enforced:
    - No floats for money.  Amounts are Decimal, stored as Numeric(38, 9).
    - round_money() is the single rounding function for monetary values;
      reconciliation balances and differences are rounded to cents with
      ROUND_HALF_UP.

Failure modes:
    - decimal.InvalidOperation from to_money() on a non-numeric string.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# ISO 4217 currency code
Currency = Annotated[str, String(3)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Examples:
        round_money(Decimal("100.005")) -> Decimal("100.01")
        round_money(Decimal("-0.004"))  -> Decimal("0.00")
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    rounded = value.quantize(quantum, rounding=rounding)
    # Normalize negative zero so "-0.00" never reaches a persisted balance
    return rounded if rounded != 0 else ZERO


def to_money(value) -> Decimal:
    """
    Coerce a database or caller value to a cent-rounded Decimal.

    Aggregate queries return None for empty sets and, on SQLite, floats; both
    are normalized here.  Floats go through ``str`` so 0.1 stays 0.10.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = Decimal(str(value))
    elif not isinstance(value, Decimal):
        value = Decimal(value)
    return round_money(value)
