"""
Offer lookups — what a shopper can see before checkout.
"""

from __future__ import annotations

from datetime import datetime

from bazaar.domain import Offer
from bazaar.errors import ValidationError
from bazaar.pricing._eligibility import in_scope, normalize_code
from bazaar.pricing._types import CatalogReader


async def applicable_offers(
    catalog: CatalogReader,
    product_id: str,
    now: datetime,
) -> list[Offer]:
    """
    Live offers of the product's store whose scope covers the product.

    Code-gated offers are included; callers show them as "needs a code".
    """
    products = await catalog.products([product_id])
    product = products.get(product_id)
    if product is None or not product.is_active:
        raise ValidationError(
            f"Product {product_id} not found",
            code="product_not_found",
            details={"product_id": product_id},
        )

    offers = await catalog.live_offers(product.store_id, now)
    return [o for o in offers if in_scope(o.scope, product.facts)]


async def validate_offer_code(
    catalog: CatalogReader,
    store_id: str,
    code: str,
    now: datetime,
) -> Offer:
    """The live code-gated offer of `store_id` matching `code`."""
    if normalize_code(code):
        offer = await catalog.offer_by_code(store_id, code, now)
        if offer is not None:
            return offer

    raise ValidationError(
        "Offer code is invalid or expired",
        code="invalid_offer_code",
        details={"store_id": store_id, "code": code},
    )


__all__ = ("applicable_offers", "validate_offer_code")
