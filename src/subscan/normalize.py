"""Monthly cost normalization.

Converts a raw billed amount and its frequency into a monthly-equivalent
cost. Every value is rounded half-up to pence as soon as it is produced, and
totals sum the already-rounded values, so a total always equals the sum of
the figures shown next to it.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

from subscan.models import ANNUAL, WEEKLY, round_money

WEEKS_PER_MONTH = Decimal("4.33")
MONTHS_PER_YEAR = Decimal("12")

_ZERO = Decimal("0.00")


def as_decimal(amount: Decimal | int | float | str) -> Decimal | None:
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            return None
    if not value.is_finite():
        return None
    return value


def normalize_monthly(amount: Decimal | int | float | str, frequency: str) -> Decimal:
    """Return the monthly-equivalent cost of *amount* billed at *frequency*.

    Args:
        amount: Raw billed amount.
        frequency: ``"annual"`` divides by 12, ``"weekly"`` multiplies by
            4.33; ``"monthly"`` and ``"unknown"`` are taken as already
            monthly.

    Returns:
        The monthly cost rounded half-up to 2 decimal places, or ``0.00``
        when *amount* is zero, negative, or not a finite number.
    """
    value = as_decimal(amount)
    if value is None or value <= 0:
        return _ZERO
    if frequency == ANNUAL:
        return round_money(value / MONTHS_PER_YEAR)
    if frequency == WEEKLY:
        return round_money(value * WEEKS_PER_MONTH)
    return round_money(value)


def denormalize(monthly: Decimal | int | float | str, frequency: str) -> Decimal:
    """Inverse of :func:`normalize_monthly`: the billed amount for a monthly cost.

    Weekly amounts are kept at four decimal places so that normalizing
    them again lands back on *monthly*.
    """
    value = as_decimal(monthly)
    if value is None or value <= 0:
        return _ZERO
    if frequency == ANNUAL:
        return round_money(value * MONTHS_PER_YEAR)
    if frequency == WEEKLY:
        return (value / WEEKS_PER_MONTH).quantize(Decimal("0.0001"))
    return round_money(value)


def sum_monthly(pairs: Iterable[tuple[Decimal, str]]) -> Decimal:
    """Sum the monthly-normalized costs of ``(amount, frequency)`` pairs."""
    total = _ZERO
    for amount, frequency in pairs:
        total += normalize_monthly(amount, frequency)
    return total
