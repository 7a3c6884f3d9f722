"""
Seeding — write domain values as catalog rows.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.domain import Offer, Product, ShippingRule, StoreAccount
from bazaar.store._codec import offer_to_row, product_to_rows, rule_to_row, store_to_row
from bazaar.store._tables import ProductShippingRuleTable


async def seed(
    session: AsyncSession,
    *,
    stores: Iterable[StoreAccount] = (),
    products: Iterable[Product] = (),
    offers: Iterable[Offer] = (),
    rules: Iterable[ShippingRule] = (),
    assignments: Mapping[str, str] | None = None,
) -> None:
    """
    Add rows in dependency order and flush.

    `assignments` maps product_id → rule_id.

    Example:
        async with session_factory() as session, session.begin():
            await seed(session, stores=[s1], products=[p1], rules=[r1], assignments={"p1": "r1"})
    """
    session.add_all(store_to_row(s) for s in stores)
    await session.flush()

    for product in products:
        session.add_all(product_to_rows(product))
    session.add_all(rule_to_row(r) for r in rules)
    session.add_all(offer_to_row(o) for o in offers)
    await session.flush()

    session.add_all(
        ProductShippingRuleTable(product_id=pid, rule_id=rid)
        for pid, rid in (assignments or {}).items()
    )
    await session.flush()


__all__ = ("seed",)
