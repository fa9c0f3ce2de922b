"""
Money -- exact Decimal arithmetic for currency amounts.

Responsibility:
    Converts raw inputs to Decimal, rounds to cents with ROUND_HALF_UP,
    and computes tax.  Every monetary field in the engines and the
    receivables module passes through these functions.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine. No outward dependencies.

Invariants enforced:
    - No binary floating point in money arithmetic.  Floats arriving from
      a UI are converted through their shortest ``str()`` form, never
      through ``Decimal(float)``.
    - round_money() is the ONLY sanctioned rounding function.
    - tax = round(base * rate / 100, 2).

Failure modes:
    - InvalidAmountError on NaN, Infinity, or unparsable input.
    - InvalidQuantityError on negative quantity.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from billing_kernel.exceptions import InvalidAmountError, InvalidQuantityError

MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")
_HUNDRED = Decimal("100")

MoneyLike = Decimal | int | str | float


def to_money(value: MoneyLike) -> Decimal:
    """
    Convert a raw value to a finite Decimal.

    Not rounded -- callers apply round_money() where a cent value is required.

    Raises:
        InvalidAmountError: value is None, a bool, unparsable, NaN or infinite.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(value, "missing or non-numeric")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise InvalidAmountError(value, "unparsable") from exc
    if not result.is_finite():
        raise InvalidAmountError(value)
    return result


def round_money(
    value: MoneyLike,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given decimal places (default: cents).

    ROUND_HALF_UP: 0.005 -> 0.01, -0.005 -> -0.01.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return to_money(value).quantize(Decimal(quantize_str), rounding=rounding)


def sum_money(values: Iterable[MoneyLike]) -> Decimal:
    """Exact sum of monetary values, rounded to cents. Empty input sums to 0.00."""
    total = Decimal("0")
    for value in values:
        total += to_money(value)
    return round_money(total)


def multiply(amount: MoneyLike, quantity: MoneyLike) -> Decimal:
    """Extended line amount ``amount * quantity``, rounded to cents."""
    qty = to_money(quantity)
    if qty < 0:
        raise InvalidQuantityError(qty)
    return round_money(to_money(amount) * qty)


def compute_tax(base_amount: MoneyLike, tax_rate: MoneyLike) -> Decimal:
    """
    Tax on a base amount at a percentage rate.

    ``tax_amount = round(base_amount * tax_rate / 100, 2)``
    """
    rate = to_money(tax_rate)
    if rate < 0:
        raise InvalidAmountError(tax_rate, "tax rate cannot be negative")
    return round_money(to_money(base_amount) * rate / _HUNDRED)


def derive_tax_rate(base_amount: MoneyLike, tax_amount: MoneyLike) -> Decimal:
    """Back out the percentage rate from a tax amount. 0 when the base is 0."""
    base = to_money(base_amount)
    if base == 0:
        return Decimal("0").quantize(Decimal("0.0001"))
    return round_money(to_money(tax_amount) / base * _HUNDRED, RATE_DECIMAL_PLACES)
