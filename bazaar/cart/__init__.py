"""
Cart — pre-checkout checks and summaries.

    from bazaar import cart as CT

    availability = await CT.validate_cart_item(catalog, "p1", 2)
    summary = await CT.summarize_cart(catalog, items, address)
"""

from bazaar.cart._cart import (
    ItemAvailability,
    StoreSummary,
    CartSummary,
    validate_cart_item,
    summarize_cart,
)

__all__ = (
    "ItemAvailability",
    "StoreSummary",
    "CartSummary",
    "validate_cart_item",
    "summarize_cart",
)
