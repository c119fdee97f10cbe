"""Monetary rounding helpers."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize to cents, rounding half away from zero."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def commission_for(price: Decimal, rate: Decimal) -> Decimal:
    return to_money(Decimal(price) * Decimal(rate))
