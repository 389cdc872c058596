"""
Fixed-precision money helpers.

Prices are ``Decimal`` values with exactly two fractional digits. Arithmetic
runs on unrounded decimals; rounding happens only when a value is stored or
presented. Serialized money is always a fixed-point string such as ``"19.99"``.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, Any, Union

from pydantic import AfterValidator, BeforeValidator, PlainSerializer

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal without binary floating point drift"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr of a float is the shortest string that round-trips, e.g. "1.005"
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid money value: {value!r}")


def round2(value: Number) -> Decimal:
    """Round to two decimals, half away from zero (1.005 -> 1.01)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Number) -> str:
    """Fixed two-decimal string representation."""
    return f"{round2(value):.2f}"


def _coerce_money(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("Invalid money value")
    if isinstance(value, (int, float, str, Decimal)):
        return to_decimal(value)
    return value


def _check_money(value: Decimal) -> Decimal:
    if not value.is_finite():
        raise ValueError("Price must be a finite number")
    if value < 0:
        raise ValueError("Price cannot be negative")
    if value != value.quantize(CENT):
        raise ValueError("Price must have at most two decimal places")
    return value.quantize(CENT)


Money = Annotated[
    Decimal,
    BeforeValidator(_coerce_money),
    AfterValidator(_check_money),
    PlainSerializer(format_money, return_type=str, when_used="json"),
]
