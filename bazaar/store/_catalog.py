"""
SQL catalog — products, offers, shipping rules and stock reservations.

Bound to one AsyncSession; the caller owns the transaction.

    async with session_factory() as session, session.begin():
        catalog = SqlCatalog(session)
        locked = await catalog.lock_products(["p1", "p2"])
        await catalog.reserve("p1", 2)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, cast

from sqlalchemy import or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.domain import Offer, Product, ShippingRule, StoreAccount
from bazaar.errors import StockError
from bazaar.pricing import normalize_code
from bazaar.store._codec import (
    offer_from_row,
    product_from_row,
    rule_from_row,
    store_from_row,
)
from bazaar.store._tables import (
    CollectionMemberTable,
    OfferTable,
    ProductShippingRuleTable,
    ProductTable,
    ShippingRuleTable,
    StoreTable,
)


class SqlCatalog:
    """CatalogReader over SQLAlchemy plus the stock write path."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    async def products(self, product_ids: Sequence[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        rows = await self.session.scalars(
            select(ProductTable).where(ProductTable.id.in_(product_ids))
        )
        return await self._with_collections(list(rows))

    async def live_offers(self, store_id: str, now: datetime) -> list[Offer]:
        rows = await self.session.scalars(
            select(OfferTable)
            .where(
                OfferTable.store_id == store_id,
                OfferTable.is_active.is_(True),
                OfferTable.valid_from <= now,
                or_(OfferTable.valid_until.is_(None), OfferTable.valid_until > now),
            )
            .order_by(OfferTable.valid_from, OfferTable.id)
        )
        return [offer_from_row(row) for row in rows]

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
        if not product_ids:
            return {}
        result = await self.session.execute(
            select(ProductShippingRuleTable.product_id, ShippingRuleTable)
            .join(ShippingRuleTable, ShippingRuleTable.id == ProductShippingRuleTable.rule_id)
            .where(
                ProductShippingRuleTable.product_id.in_(product_ids),
                ShippingRuleTable.store_id == store_id,
            )
        )
        return {product_id: rule_from_row(rule) for product_id, rule in result}

    async def store_account(self, store_id: str) -> StoreAccount | None:
        row = await self.session.get(StoreTable, store_id)
        return store_from_row(row) if row is not None else None

    # ─────────────────────────────────────────────────────────────────────────
    # Stock
    # ─────────────────────────────────────────────────────────────────────────

    async def lock_products(self, product_ids: Sequence[str]) -> dict[str, Product]:
        """
        SELECT ... FOR UPDATE in id order.

        Note: sqlite ignores FOR UPDATE; `reserve` still refuses to overdraw.
        """
        rows = await self.session.scalars(
            select(ProductTable)
            .where(ProductTable.id.in_(sorted(product_ids)))
            .order_by(ProductTable.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self._with_collections(list(rows))

    async def reserve(self, product_id: str, quantity: int) -> None:
        """Raises StockError when fewer than `quantity` units are available."""
        stmt = (
            update(ProductTable)
            .where(
                ProductTable.id == product_id,
                ProductTable.stock - ProductTable.reserved_stock >= quantity,
            )
            .values(reserved_stock=ProductTable.reserved_stock + quantity)
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await self.session.execute(stmt))
        if cursor.rowcount > 0:
            return

        row = await self.session.execute(
            select(ProductTable.stock, ProductTable.reserved_stock).where(
                ProductTable.id == product_id
            )
        )
        current = row.one_or_none()
        available = max(0, current.stock - current.reserved_stock) if current else 0
        raise StockError(product_id, quantity, available)

    async def release(self, product_id: str, quantity: int) -> None:
        stmt = (
            update(ProductTable)
            .where(
                ProductTable.id == product_id,
                ProductTable.reserved_stock >= quantity,
            )
            .values(reserved_stock=ProductTable.reserved_stock - quantity)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    # ─────────────────────────────────────────────────────────────────────────

    async def _with_collections(self, rows: list[ProductTable]) -> dict[str, Product]:
        if not rows:
            return {}
        members = await self.session.execute(
            select(CollectionMemberTable.product_id, CollectionMemberTable.collection_id).where(
                CollectionMemberTable.product_id.in_([row.id for row in rows])
            )
        )
        collections: dict[str, list[str]] = {}
        for product_id, collection_id in members:
            collections.setdefault(product_id, []).append(collection_id)

        return {row.id: product_from_row(row, collections.get(row.id, ())) for row in rows}


__all__ = ("SqlCatalog",)
