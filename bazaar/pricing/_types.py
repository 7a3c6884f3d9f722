"""
Pricing types — billing inputs and the catalog read interface.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from bazaar.config import CheckoutPolicy
from bazaar.domain import (
    Address,
    CartItem,
    CartLine,
    Offer,
    Product,
    ShippingRule,
    StoreAccount,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog read interface
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogReader(Protocol):
    """
    Read side of the catalog, offer and shipping-rule stores.

    Note: implementations read fresh on every call; offers and rules may
    change between requests.
    """

    async def products(self, product_ids: Sequence[str]) -> dict[str, Product]:
        """Products by id. Unknown ids are absent from the result."""
        ...

    async def live_offers(self, store_id: str, now: datetime) -> list[Offer]:
        ...

    async def offer_by_code(self, store_id: str, code: str, now: datetime) -> Offer | None:
        """The live code-gated offer whose code matches (trimmed, case-insensitive)."""
        ...

    async def shipping_assignments(
        self,
        store_id: str,
        product_ids: Sequence[str],
    ) -> dict[str, ShippingRule]:
        """product_id → its assigned rule (at most one per product)."""
        ...

    async def store_account(self, store_id: str) -> StoreAccount | None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Billing request
# ═══════════════════════════════════════════════════════════════════════════════


def merge_items(items: Iterable[CartItem]) -> tuple[CartItem, ...]:
    """Collapse repeated products, keeping first-seen order."""
    quantities: dict[str, int] = {}
    for item in items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    return tuple(CartItem(pid, qty) for pid, qty in quantities.items())


@dataclass(frozen=True, slots=True)
class BillingRequest:
    """Server-side billing input: ids and quantities only, never prices."""

    store_id: str
    items: tuple[CartItem, ...]
    address: Address
    offer_codes: tuple[str, ...] = ()

    @property
    def product_ids(self) -> tuple[str, ...]:
        return tuple(item.product_id for item in self.items)


@dataclass(frozen=True, slots=True)
class PricingSnapshot:
    """Everything the engines read, captured once per computation."""

    store_id: str
    lines: tuple[CartLine, ...]
    offers: tuple[Offer, ...]
    assignments: Mapping[str, ShippingRule] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BillingContext:
    """Injected into the billing graph."""

    request: BillingRequest
    catalog: CatalogReader
    policy: CheckoutPolicy
    now: datetime


__all__ = (
    "CatalogReader",
    "merge_items",
    "BillingRequest",
    "PricingSnapshot",
    "BillingContext",
)
