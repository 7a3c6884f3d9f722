"""
Money — fixed-point helpers over decimal.Decimal.

All arithmetic stays at full precision; rounding happens only at
reporting boundaries (billing results, gateway amounts).

    from bazaar.money import money, quantize, to_minor_units

    price = money("199.99")
    total = quantize(price * 3)          # Decimal("599.97")
    to_minor_units(total)                # 59997
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

type Money = Decimal
"""A money amount. Never a float."""

ZERO: Money = Decimal("0")
CENT: Money = Decimal("0.01")
HUNDRED: Money = Decimal("100")

TOLERANCE: Money = CENT
"""Largest drift accepted between two independently summed amounts."""


def money(value: object) -> Money:
    """
    Coerce to Decimal without passing through binary floating point.

    Floats are converted via their repr, so money(0.1) == Decimal("0.1").
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a money amount")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a money amount: {value!r}") from e
    raise TypeError(f"Not a money amount: {type(value).__name__}")


def quantize(value: Money) -> Money:
    """Round half-up to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(value: Money, rate: Money) -> Money:
    """`value * rate / 100` at full precision."""
    return value * rate / HUNDRED


def to_minor_units(value: Money) -> int:
    """
    Convert to the gateway's integer minor units (paise, cents).

    Raises ValueError for sub-cent values; quantize first.
    """
    if quantize(value) != value:
        raise ValueError(f"Not a whole number of cents: {value}")
    return int(value * HUNDRED)


def from_minor_units(units: int) -> Money:
    return Decimal(units) / HUNDRED


def within_tolerance(a: Money, b: Money, tolerance: Money = TOLERANCE) -> bool:
    return abs(a - b) <= tolerance


__all__ = (
    "Money",
    "ZERO",
    "CENT",
    "HUNDRED",
    "TOLERANCE",
    "money",
    "quantize",
    "percent_of",
    "to_minor_units",
    "from_minor_units",
    "within_tolerance",
)
