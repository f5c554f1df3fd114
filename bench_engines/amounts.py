"""
Rate and amount arithmetic (``bench_engines.amounts``).

Responsibility
--------------
The only arithmetic the lifecycle performs on money and time: converting
inputs to Decimal, rounding to currency precision, converting amounts to
provider minor units, and summing hours and line subtotals.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO database,
ZERO clock reads.

Invariants enforced
-------------------
* Decimal-only arithmetic.  Floats are converted through ``str`` so a
  caller passing ``37.5`` gets ``Decimal("37.5")``, never a binary
  approximation.
* Each line subtotal is rounded half-up to the currency precision once;
  totals are sums of already-rounded subtotals, so an invoice amount always
  equals the sum of its lines exactly.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# ISO 4217 minor-unit exponents for currencies the platform bills in
_CURRENCY_EXPONENTS: dict[str, int] = {
    "EUR": 2,
    "USD": 2,
    "GBP": 2,
    "CHF": 2,
    "SEK": 2,
    "PLN": 2,
    "JPY": 0,
}

HOURS_PRECISION = Decimal("0.01")


def currency_exponent(currency: str) -> int:
    try:
        return _CURRENCY_EXPONENTS[currency.upper()]
    except KeyError:
        raise ValueError(f"Unsupported currency: {currency}") from None


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a numeric input to Decimal.

    Raises:
        ValueError: value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_currency(amount: Decimal, currency: str = "EUR") -> Decimal:
    """Round half-up to the currency's minor unit."""
    quantum = Decimal(1).scaleb(-currency_exponent(currency))
    return to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)


def round_hours(hours: Decimal | int | float | str) -> Decimal:
    return to_decimal(hours).quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal, currency: str = "EUR") -> int:
    """Amount in the currency's smallest unit (cents for EUR)."""
    exponent = currency_exponent(currency)
    return int(round_currency(amount, currency).scaleb(exponent))


def line_subtotal(
    hours: Decimal,
    rate: Decimal,
    currency: str = "EUR",
) -> Decimal:
    """Hours times hourly rate, rounded to the currency's minor unit."""
    return round_currency(to_decimal(hours) * to_decimal(rate), currency)


def sum_hours(values: Iterable[Decimal]) -> Decimal:
    return sum((to_decimal(v) for v in values), Decimal("0"))


def sum_amounts(values: Iterable[Decimal]) -> Decimal:
    return sum((to_decimal(v) for v in values), Decimal("0"))
