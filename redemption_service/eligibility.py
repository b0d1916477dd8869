"""
eligibility.py — Qualifying Product Check

An order qualifies for a membership code when at least one line item refers
to a configured qualifying product. The first such item, in line item order,
decides the code prefix; an order never receives more than one code.
"""

from typing import Mapping, Optional, Tuple

from .models import LineItem, OrderWebhook


def find_qualifying_item(order: OrderWebhook, products: Mapping[str, str]) -> Optional[Tuple[LineItem, str]]:
    """
    Finds the line item that decides the code prefix.

    Args:
        order (OrderWebhook): The parsed webhook payload.
        products (Mapping[str, str]): Qualifying product ID → prefix.

    Returns:
        tuple: `(line_item, prefix)` of the first qualifying item, or None if
        the order contains no qualifying product.
    """
    for item in order.line_items:
        if item.product_id is not None and item.product_id in products:
            return item, products[item.product_id]
    return None


def is_test_order(order: OrderWebhook) -> bool:
    return bool(order.test)
