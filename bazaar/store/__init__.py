"""
Store — SQLAlchemy persistence for the catalog, orders and attempts.

    from bazaar import store as S

    session_factory, engine = await S.create_database("sqlite+aiosqlite:///bazaar.db")

    async with session_factory() as session, session.begin():
        catalog = S.SqlCatalog(session)
        products = await catalog.products(["p1"])

    attempts = S.AttemptStore(session_factory)

Tables:
    stores, products, product_collections, offers, shipping_rules,
    product_shipping_rules, orders, order_items, order_status_history,
    checkout_attempts
"""

from bazaar.store._db import (
    Base,
    SessionFactory,
    open_engine,
    create_database,
    create_schema,
    insert_if_absent,
)
from bazaar.store._tables import (
    StoreTable,
    ProductTable,
    CollectionMemberTable,
    OfferTable,
    ShippingRuleTable,
    ProductShippingRuleTable,
    OrderTable,
    OrderItemTable,
    OrderStatusHistoryTable,
    AttemptMixin,
    CheckoutAttemptTable,
)
from bazaar.store._catalog import SqlCatalog
from bazaar.store._orders import Orders
from bazaar.store._attempts import (
    StoreError,
    AttemptState,
    AttemptClaim,
    CheckoutAttempt,
    AttemptStore,
)
from bazaar.store._memory import MemoryCatalog
from bazaar.store._seed import seed

Catalog = SqlCatalog

__all__ = (
    # Database
    "Base",
    "SessionFactory",
    "open_engine",
    "create_database",
    "create_schema",
    "insert_if_absent",
    # Tables
    "StoreTable",
    "ProductTable",
    "CollectionMemberTable",
    "OfferTable",
    "ShippingRuleTable",
    "ProductShippingRuleTable",
    "OrderTable",
    "OrderItemTable",
    "OrderStatusHistoryTable",
    "AttemptMixin",
    "CheckoutAttemptTable",
    # Repositories
    "Catalog",
    "SqlCatalog",
    "MemoryCatalog",
    "Orders",
    "seed",
    # Attempts
    "StoreError",
    "AttemptState",
    "AttemptClaim",
    "CheckoutAttempt",
    "AttemptStore",
)
