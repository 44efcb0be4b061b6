"""
Module: exit_kernel.db.types
Responsibility: Annotated column aliases and the money/time normalization
    helpers shared by every model, engine and service.
Architecture position: Kernel > DB.  May be imported by every layer.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for settlement
      figures.  Every component is rounded once, before it is summed, so
      totals are exact sums of what the breakdown shows.
    - No floats.  money() rejects float input outright.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import BigInteger, Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

Sequence = Annotated[int, BigInteger]

# SHA-256 hash as hex string
PayloadHash = Annotated[str, String(64)]

MONEY_DECIMAL_PLACES = 2

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """
    Round a monetary amount to the given precision.

    Preconditions: value is a Decimal.
    Postconditions: Result has exactly ``decimal_places`` fractional digits.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)


def money(value: Any) -> Decimal:
    """
    Coerce int, str or Decimal input to Decimal.

    Raises:
        TypeError: If value is a float or bool.
        ValueError: If value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bool, float)):
        raise TypeError(f"Monetary values must not be {type(value).__name__}: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a numeric amount: {value!r}") from exc


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
