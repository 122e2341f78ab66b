"""Fixed-point conversion and display formatting — no I/O."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext

DEFAULT_DECIMALS = 18

# Wide enough for any uint256 without rounding.
WIDE_CONTEXT = Context(prec=80)


def parse_amount(text: str) -> Decimal:
    """Parse an operator-entered amount such as ``"1,250.5"``.

    Raises:
        ValueError: if the text is not a finite decimal number.
    """
    cleaned = text.strip().replace(",", "")
    try:
        value = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {text!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {text!r}")
    return value


def to_fixed(amount: Decimal | str, decimals: int = DEFAULT_DECIMALS) -> int:
    """Convert a decimal amount to an on-chain fixed-point integer.

    Raises:
        ValueError: if the amount carries more precision than ``decimals``.
    """
    value = parse_amount(amount) if isinstance(amount, str) else amount
    with localcontext(WIDE_CONTEXT):
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{value} has more than {decimals} decimal places")
        return int(scaled)


def from_fixed(raw: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Convert an on-chain fixed-point integer to an exact Decimal."""
    with localcontext(WIDE_CONTEXT):
        return Decimal(int(raw)).scaleb(-decimals)


def round_display(value: Decimal, places: int = 2) -> Decimal:
    """Round half-up for display; never use the result in comparisons."""
    with localcontext(WIDE_CONTEXT):
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_amount(value: Decimal, places: int = 2) -> str:
    """Format without grouping, e.g. ``Decimal("12.5")`` → ``"12.50"``."""
    return f"{round_display(value, places):f}"


def format_usd(value: Decimal, places: int = 2) -> str:
    """Format with thousands separators, e.g. ``"$1,234.50"``."""
    return f"${round_display(value, places):,.{places}f}"
