# Overview: Decimal money helpers; parsing, half-up rounding to cents, and summing.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from .errors import InvalidStateError

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


def quantize_money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value, field: str, details: dict | None = None) -> Decimal:
    """
    Coerce a JSON/number value into Decimal.

    Floats go through str() so 0.1 stays 0.1. Booleans, NaN and infinities
    are rejected.
    """
    err_details = dict(details or {}, field=field)
    if value is None or isinstance(value, bool):
        raise InvalidStateError(f"{field} is required and must be a number", details=err_details)
    try:
        result = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise InvalidStateError(f"{field} must be a number", details=err_details)
    if not result.is_finite():
        raise InvalidStateError(f"{field} must be a finite number", details=err_details)
    return result


def positive_amount(value, field: str = "amount", details: dict | None = None) -> Decimal:
    amount = quantize_money(to_decimal(value, field, details))
    if amount <= 0:
        raise InvalidStateError(f"{field} must be greater than zero", details=dict(details or {}, field=field))
    return amount


def money_sum(values: Iterable) -> Decimal:
    total = ZERO
    for value in values:
        if value is not None:
            total += Decimal(value)
    return quantize_money(total)
