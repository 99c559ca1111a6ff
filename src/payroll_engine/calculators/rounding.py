"""Rounding policies for monetary amounts.

Jurisdictions specify a rounding mode and a rounding unit (precision) in
cents: 1 rounds to the nearest cent, 5 to the nearest 5 cents, 100 to the
nearest dollar. Reproducing the exact policy is required for audits.
"""

from __future__ import annotations

from decimal import (
    ROUND_CEILING,
    ROUND_FLOOR,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    Decimal,
)

from payroll_engine.calculators.types import RoundingMode

# ROUND_HALF_UP in decimal rounds ties away from zero.
_DECIMAL_ROUNDING = {
    RoundingMode.NEAREST: ROUND_HALF_UP,
    RoundingMode.FLOOR: ROUND_FLOOR,
    RoundingMode.CEIL: ROUND_CEILING,
    RoundingMode.BANKER: ROUND_HALF_EVEN,
}

ONE = Decimal("1")


def to_decimal(value: int | float | str | Decimal) -> Decimal:
    """Convert a numeric input to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a numeric amount")
    return Decimal(str(value))


def round_amount(
    amount: int | float | str | Decimal,
    mode: RoundingMode | str = RoundingMode.NEAREST,
    precision: int | Decimal = 1,
) -> Decimal:
    """Round amount to a multiple of precision using the given mode.

    A non-positive precision is treated as 1 so the function stays total.
    """
    mode = RoundingMode(mode)
    unit = to_decimal(precision)
    if unit <= 0:
        unit = ONE

    scaled = to_decimal(amount) / unit
    rounded = scaled.quantize(ONE, rounding=_DECIMAL_ROUNDING[mode])
    return rounded * unit


def round_to_cents(
    amount: int | float | str | Decimal,
    mode: RoundingMode | str = RoundingMode.NEAREST,
    precision: int | Decimal = 1,
) -> int:
    """Round amount per policy and return whole cents."""
    rounded = round_amount(amount, mode, precision)
    # Fractional precision units can leave a sub-cent remainder.
    return int(rounded.quantize(ONE, rounding=ROUND_HALF_UP))
