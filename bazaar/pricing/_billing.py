"""
Billing graph — subtotal, discount, shipping and tax as nodes.

Architecture:
    BillingContext (injected)
         │
         ▼
    SnapshotNode ──────────────┬──────────────────┐
         │                     │                  │
         ▼                     ▼                  ▼
    SubtotalNode          DiscountNode       ShippingNode
         │                     │                  │
         │                     └──── TaxNode ─────┤
         │                              │         │
         └──────────────── BillingNode ◄──────────┘

Note: no 'from __future__ import annotations' here; nodnod reads the
type hints at runtime to wire dependencies.
"""

from datetime import datetime

from kungfu import Error, Ok, Result

from bazaar import graph as G
from bazaar.clock import utcnow
from bazaar.config import CheckoutPolicy
from bazaar.domain import BillingResult, CartLine, DiscountOutcome
from bazaar.errors import CheckoutError, StockError, UndeliverableError, ValidationError
from bazaar.log import get_logger
from bazaar.money import ZERO, Money, percent_of, quantize
from bazaar.pricing._discount import apply_offers
from bazaar.pricing._shipping import compute_shipping
from bazaar.pricing._types import (
    BillingContext,
    BillingRequest,
    CatalogReader,
    PricingSnapshot,
)


logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot — the only node that reads the catalog
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class SnapshotNode:
    """Loads products, offers and rule assignments once, sequentially."""

    def __init__(self, snapshot: PricingSnapshot, context: BillingContext) -> None:
        self.snapshot = snapshot
        self.context = context

    @classmethod
    async def __compose__(cls, context: BillingContext) -> "SnapshotNode":
        request = context.request
        if not request.items:
            raise ValidationError("Cart is empty")

        products = await context.catalog.products(request.product_ids)

        lines: list[CartLine] = []
        for item in request.items:
            if item.quantity <= 0:
                raise ValidationError(
                    f"Quantity for product {item.product_id} must be positive",
                    details={"product_id": item.product_id, "quantity": item.quantity},
                )
            product = products.get(item.product_id)
            if product is None or product.store_id != request.store_id or not product.is_active:
                raise ValidationError(
                    f"Product {item.product_id} is not sold by store {request.store_id}",
                    details={"product_id": item.product_id, "store_id": request.store_id},
                )
            if item.quantity > product.available:
                raise StockError(item.product_id, item.quantity, product.available)
            lines.append(product.to_line(item.quantity))

        offers = await context.catalog.live_offers(request.store_id, context.now)
        assignments = await context.catalog.shipping_assignments(
            request.store_id, request.product_ids
        )

        snapshot = PricingSnapshot(
            store_id=request.store_id,
            lines=tuple(lines),
            offers=tuple(offers),
            assignments=assignments,
        )
        return cls(snapshot, context)


# ═══════════════════════════════════════════════════════════════════════════════
# Components
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class SubtotalNode:
    """Σ unit_price × quantity at listed prices."""

    def __init__(self, amount: Money) -> None:
        self.amount = amount

    @classmethod
    def __compose__(cls, snapshot: SnapshotNode) -> "SubtotalNode":
        return cls(sum((line.amount for line in snapshot.snapshot.lines), ZERO))


@G.node
class DiscountNode:
    def __init__(self, outcome: DiscountOutcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, snapshot: SnapshotNode) -> "DiscountNode":
        snap, context = snapshot.snapshot, snapshot.context
        outcome = apply_offers(
            snap.store_id,
            snap.lines,
            snap.offers,
            context.request.offer_codes,
            context.now,
        )
        return cls(outcome)


@G.node
class ShippingNode:
    """Fails the whole billing when any line cannot reach the address."""

    def __init__(self, amount: Money) -> None:
        self.amount = amount

    @classmethod
    def __compose__(cls, snapshot: SnapshotNode) -> "ShippingNode":
        snap, context = snapshot.snapshot, snapshot.context
        address = context.request.address
        amount = compute_shipping(
            snap.store_id,
            snap.lines,
            address,
            snap.assignments,
            context.policy.domestic_country,
        )
        if amount is None:
            raise UndeliverableError(snap.store_id, address.country)
        return cls(amount)


@G.node
class TaxNode:
    """
    Tax on post-discount amounts of tax-exclusive lines.

    Inclusive lines already carry their tax. Shipping is taxed at the
    highest line rate only when the policy asks for it.
    """

    def __init__(self, amount: Money) -> None:
        self.amount = amount

    @classmethod
    def __compose__(
        cls,
        snapshot: SnapshotNode,
        discount: DiscountNode,
        shipping: ShippingNode,
    ) -> "TaxNode":
        amount = sum(
            (
                percent_of(state.amount, state.line.tax_rate)
                for state in discount.outcome.line_states
                if not state.line.tax_inclusive
            ),
            ZERO,
        )

        lines = snapshot.snapshot.lines
        if snapshot.context.policy.tax_shipping and shipping.amount > 0 and lines:
            top_rate = max(line.tax_rate for line in lines)
            amount += percent_of(shipping.amount, top_rate)

        return cls(amount)


# ═══════════════════════════════════════════════════════════════════════════════
# Billing
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class BillingNode:
    """Rounds at the boundary; total is derived from the rounded parts."""

    def __init__(self, result: BillingResult) -> None:
        self.result = result

    @classmethod
    def __compose__(
        cls,
        snapshot: SnapshotNode,
        subtotal: SubtotalNode,
        discount: DiscountNode,
        shipping: ShippingNode,
        tax: TaxNode,
    ) -> "BillingNode":
        sub = quantize(subtotal.amount)
        ship = quantize(shipping.amount)
        disc = quantize(discount.outcome.total_discount)
        gst = quantize(tax.amount)

        result = BillingResult(
            subtotal=sub,
            shipping=ship,
            discount=disc,
            gst=gst,
            total=sub + ship + gst - disc,
            applied_offers=discount.outcome.applied_offers,
        )
        logger.debug(
            "billing_computed",
            store_id=snapshot.snapshot.store_id,
            subtotal=str(result.subtotal),
            shipping=str(result.shipping),
            discount=str(result.discount),
            gst=str(result.gst),
            total=str(result.total),
        )
        return cls(result)

    @classmethod
    async def execute(cls, context: BillingContext) -> Result[BillingResult, CheckoutError]:
        """Run the graph; structured failures come back as Error."""
        try:
            node = await G.compose(cls, context)
            return Ok(node.result)
        except CheckoutError as e:
            return Error(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def compute_billing(
    catalog: CatalogReader,
    request: BillingRequest,
    *,
    policy: CheckoutPolicy | None = None,
    now: datetime | None = None,
) -> BillingResult:
    """
    Authoritative billing for one store group.

    Raises CheckoutError subclasses (ValidationError, UndeliverableError,
    StockError, InternalConsistencyError).

    Example:
        billing = await compute_billing(catalog, BillingRequest("s1", items, address))
    """
    context = BillingContext(
        request=request,
        catalog=catalog,
        policy=policy or CheckoutPolicy(),
        now=now or utcnow(),
    )
    node = await G.compose(BillingNode, context)
    return node.result


__all__ = (
    "SnapshotNode",
    "SubtotalNode",
    "DiscountNode",
    "ShippingNode",
    "TaxNode",
    "BillingNode",
    "compute_billing",
)
