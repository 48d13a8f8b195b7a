"""
Money helpers.

All monetary values are Decimal, quantized to cents with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.config.constants import MONEY_QUANTUM


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """
    Convert value to a cent-precision Decimal.

    Floats go through str() so 0.1 stays 0.10.

    Examples:
        >>> to_money("12.345")
        Decimal('12.35')
        >>> to_money(None)
        Decimal('0.00')
    """
    if value is None or value == "":
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Invalid money value: {value!r}") from e
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Two-decimal string for processor payloads ("12.50")."""
    return f"{to_money(value):.2f}"
