"""
Cart helpers — item checks and multi-store summaries before checkout.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime

from kungfu import Error, Ok

from bazaar.clock import utcnow
from bazaar.config import CheckoutPolicy
from bazaar.domain import Address, BillingResult, CartItem
from bazaar.errors import CheckoutError, StockError, ValidationError
from bazaar.money import ZERO, Money
from bazaar.pricing import BillingContext, BillingNode, BillingRequest, CatalogReader, merge_items


@dataclass(frozen=True, slots=True)
class ItemAvailability:
    product_id: str
    store_id: str
    requested: int
    available: int
    unit_price: Money


@dataclass(frozen=True, slots=True)
class StoreSummary:
    """Billing for one store, or why it could not be billed."""

    store_id: str
    store_name: str
    items: tuple[CartItem, ...]
    billing: BillingResult | None = None
    error: CheckoutError | None = None


@dataclass(frozen=True, slots=True)
class CartSummary:
    stores: tuple[StoreSummary, ...]
    grand_total: Money

    @property
    def billable(self) -> bool:
        return all(s.billing is not None for s in self.stores)


async def validate_cart_item(
    catalog: CatalogReader,
    product_id: str,
    quantity: int,
) -> ItemAvailability:
    """
    Can `quantity` units of the product go into the cart right now?

    Raises ValidationError (unknown, inactive, bad quantity) or StockError.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(
            "Quantity must be a positive integer",
            details={"product_id": product_id, "quantity": quantity},
        )

    product = (await catalog.products([product_id])).get(product_id)
    if product is None or not product.is_active:
        raise ValidationError(
            f"Product {product_id} not found",
            code="product_not_found",
            details={"product_id": product_id},
        )
    if quantity > product.available:
        raise StockError(product_id, quantity, product.available)

    return ItemAvailability(
        product_id=product_id,
        store_id=product.store_id,
        requested=quantity,
        available=product.available,
        unit_price=product.price,
    )


async def summarize_cart(
    catalog: CatalogReader,
    items: Iterable[CartItem],
    address: Address,
    *,
    offer_codes: Mapping[str, Sequence[str]] | None = None,
    policy: CheckoutPolicy | None = None,
    now: datetime | None = None,
) -> CartSummary:
    """
    Group a multi-store cart by store and bill each store.

    Stores that cannot be billed (undeliverable, out of stock) carry their
    error instead of a billing and are left out of the grand total.
    Unknown products reject the whole summary.
    """
    merged = merge_items(items)
    if not merged:
        raise ValidationError("Cart is empty", code="empty_cart")

    products = await catalog.products([i.product_id for i in merged])
    if unknown := [i.product_id for i in merged if i.product_id not in products]:
        raise ValidationError(
            f"Product {unknown[0]} not found",
            code="product_not_found",
            details={"product_ids": unknown},
        )

    by_store: dict[str, list[CartItem]] = {}
    for item in merged:
        by_store.setdefault(products[item.product_id].store_id, []).append(item)

    policy = policy or CheckoutPolicy()
    now = now or utcnow()
    codes = offer_codes or {}

    stores: list[StoreSummary] = []
    grand_total = ZERO
    for store_id, store_items in by_store.items():
        account = await catalog.store_account(store_id)
        context = BillingContext(
            request=BillingRequest(store_id, tuple(store_items), address, tuple(codes.get(store_id, ()))),
            catalog=catalog,
            policy=policy,
            now=now,
        )
        summary = StoreSummary(
            store_id=store_id,
            store_name=account.name if account else "",
            items=tuple(store_items),
        )
        match await BillingNode.execute(context):
            case Ok(billing):
                grand_total += billing.total
                stores.append(replace(summary, billing=billing))
            case Error(err):
                stores.append(replace(summary, error=err))

    return CartSummary(stores=tuple(stores), grand_total=grand_total)


__all__ = (
    "ItemAvailability",
    "StoreSummary",
    "CartSummary",
    "validate_cart_item",
    "summarize_cart",
)
