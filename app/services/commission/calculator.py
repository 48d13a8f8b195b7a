"""
Commission calculator.

Pure functions: order data + rate -> commission amount.
"""

from decimal import Decimal

from app.utils.money import to_money


def commission_base(payload: dict) -> Decimal:
    """
    Pick the commission base from an order or charge payload.

    Subtotal first (tax and shipping excluded), then line-item total,
    then grand total.

    Args:
        payload: Storefront order or subscription charge dict

    Returns:
        Base amount at cent precision
    """
    for key in ("subtotal_price", "total_line_items_price", "total_price"):
        value = payload.get(key)
        if value not in (None, ""):
            return to_money(value)
    return Decimal("0.00")


def calculate_commission(order_subtotal: Decimal, rate: Decimal) -> Decimal:
    """
    Calculate commission for an order.

    Args:
        order_subtotal: Order subtotal (not total)
        rate: Commission rate as a fraction (0.15 = 15%)

    Returns:
        Commission rounded half-up to cents

    Raises:
        ValueError: If subtotal or rate is negative, or rate exceeds 1

    Examples:
        >>> calculate_commission(Decimal("100"), Decimal("0.15"))
        Decimal('15.00')
        >>> calculate_commission(Decimal("33.33"), Decimal("0.15"))
        Decimal('5.00')
    """
    if order_subtotal < 0:
        raise ValueError(f"Order subtotal cannot be negative: {order_subtotal}")
    if rate < 0 or rate > 1:
        raise ValueError(f"Commission rate must be between 0 and 1: {rate}")
    return to_money(order_subtotal * rate)
