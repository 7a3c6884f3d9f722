"""
Pricing — eligibility, discounts, shipping and billing.

    from bazaar import pricing as P

    billing = await P.compute_billing(
        catalog,
        P.BillingRequest(store_id, items, address, offer_codes=("SAVE10",)),
        policy=policy,
    )

The engines themselves are pure:

    outcome = P.apply_offers(store_id, lines, offers, codes, now)
    shipping = P.compute_shipping(store_id, lines, address, assignments, "india")
"""

from bazaar.pricing._types import (
    CatalogReader,
    BillingRequest,
    BillingContext,
    PricingSnapshot,
    merge_items,
)
from bazaar.pricing._eligibility import (
    Targeted,
    normalize_code,
    code_unlocked,
    in_scope,
    is_eligible,
)
from bazaar.pricing._discount import (
    PRIORITY,
    PassResult,
    prioritized,
    initial_states,
    apply_offer,
    apply_offers,
)
from bazaar.pricing._shipping import (
    ShippingGroup,
    is_international,
    select_condition,
    evaluate,
    group_lines,
    compute_shipping,
)
from bazaar.pricing._billing import (
    SnapshotNode,
    SubtotalNode,
    DiscountNode,
    ShippingNode,
    TaxNode,
    BillingNode,
    compute_billing,
)
from bazaar.pricing._offers import applicable_offers, validate_offer_code

__all__ = (
    # Inputs
    "CatalogReader",
    "BillingRequest",
    "BillingContext",
    "PricingSnapshot",
    "merge_items",
    # Eligibility
    "Targeted",
    "normalize_code",
    "code_unlocked",
    "in_scope",
    "is_eligible",
    # Discounts
    "PRIORITY",
    "PassResult",
    "prioritized",
    "initial_states",
    "apply_offer",
    "apply_offers",
    # Shipping
    "ShippingGroup",
    "is_international",
    "select_condition",
    "evaluate",
    "group_lines",
    "compute_shipping",
    # Billing graph
    "SnapshotNode",
    "SubtotalNode",
    "DiscountNode",
    "ShippingNode",
    "TaxNode",
    "BillingNode",
    "compute_billing",
    # Lookups
    "applicable_offers",
    "validate_offer_code",
)
