"""
Memory catalog — in-process CatalogReader for previews and tests.

Note: no stock write path; checkout needs SqlCatalog.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from bazaar.domain import Offer, Product, ShippingRule, StoreAccount
from bazaar.pricing import normalize_code


@dataclass
class MemoryCatalog:
    """
    Example:
        catalog = MemoryCatalog().add_products(p1, p2).add_offers(offer)
        catalog.assign("p1", rule)
        billing = await compute_billing(catalog, request)
    """

    stores: dict[str, StoreAccount] = field(default_factory=dict)
    product_rows: dict[str, Product] = field(default_factory=dict)
    offer_rows: list[Offer] = field(default_factory=list)
    assignments: dict[str, ShippingRule] = field(default_factory=dict)

    # ─────────────────────────────────────────────────────────────────────────
    # Seeding
    # ─────────────────────────────────────────────────────────────────────────

    def add_stores(self, *stores: StoreAccount) -> MemoryCatalog:
        self.stores.update((s.store_id, s) for s in stores)
        return self

    def add_products(self, *products: Product) -> MemoryCatalog:
        self.product_rows.update((p.product_id, p) for p in products)
        return self

    def add_offers(self, *offers: Offer) -> MemoryCatalog:
        self.offer_rows.extend(offers)
        return self

    def assign(self, product_ids: str | Iterable[str], rule: ShippingRule) -> MemoryCatalog:
        ids = [product_ids] if isinstance(product_ids, str) else list(product_ids)
        self.assignments.update((pid, rule) for pid in ids)
        return self

    # ─────────────────────────────────────────────────────────────────────────
    # CatalogReader
    # ─────────────────────────────────────────────────────────────────────────

    async def products(self, product_ids: Sequence[str]) -> dict[str, Product]:
        return {pid: self.product_rows[pid] for pid in product_ids if pid in self.product_rows}

    async def live_offers(self, store_id: str, now: datetime) -> list[Offer]:
        return [o for o in self.offer_rows if o.store_id == store_id and o.is_live(now)]

    async def offer_by_code(self, store_id: str, code: str, now: datetime) -> Offer | None:
        wanted = normalize_code(code)
        for offer in await self.live_offers(store_id, now):
            if offer.requires_code and offer.code and normalize_code(offer.code) == wanted:
                return offer
        return None

    async def shipping_assignments(
        self,
        store_id: str,
        product_ids: Sequence[str],
    ) -> dict[str, ShippingRule]:
        return {
            pid: rule
            for pid in product_ids
            if (rule := self.assignments.get(pid)) is not None and rule.store_id == store_id
        }

    async def store_account(self, store_id: str) -> StoreAccount | None:
        return self.stores.get(store_id)


__all__ = ("MemoryCatalog",)
