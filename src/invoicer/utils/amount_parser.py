"""Amount parsing and rounding utilities."""

from decimal import (
    Context,
    Decimal,
    InvalidOperation,
    ROUND_CEILING,
    ROUND_FLOOR,
    ROUND_HALF_UP,
    localcontext,
)
import re
from typing import Union

Number = Union[Decimal, int, float, str]

ROUNDING_MODES = {
    "round": ROUND_HALF_UP,
    "floor": ROUND_FLOOR,
    "ceil": ROUND_CEILING,
}


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-123.45"
    - "1,234.56"
    - "€ 99"
    - "(123.45)" (negative in parentheses)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}") from e
    return -amount if is_negative else amount


def to_decimal(value: Number) -> Decimal:
    """Convert a numeric value to Decimal.

    Floats go through their string form so 33.33 becomes Decimal("33.33")
    rather than its binary expansion. NaN and infinities are preserved.

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return parse_amount(value)
    raise ValueError(f"Expected a number, got {value!r}")


def quantize_amount(amount: Decimal, places: int = 2, mode: str = "round") -> Decimal:
    """Round an amount to a number of decimal places.

    Unknown modes fall back to "round" (half away from zero). NaN and
    infinite values are returned unchanged.
    """
    if not amount.is_finite():
        return amount
    exponent = Decimal(1).scaleb(-places)
    return amount.quantize(exponent, rounding=ROUNDING_MODES.get(mode, ROUND_HALF_UP))


def round2(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return quantize_amount(amount, 2, "round")


def lenient_context():
    """Decimal context in which comparisons involving NaN are false instead of raising."""
    return localcontext(Context(traps=[]))
