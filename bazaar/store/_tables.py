"""
Tables — catalog, offers, shipping rules, orders and checkout attempts.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from bazaar.store._db import Base


MONEY = Numeric(12, 2)
RATE = Numeric(5, 2)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class StoreTable(Base):
    __tablename__ = "stores"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    platform_owned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    settlement_account: Mapped[str | None] = mapped_column(String(100), nullable=True)


class ProductTable(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("stores.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_rate: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))
    tax_inclusive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class CollectionMemberTable(Base):
    __tablename__ = "product_collections"

    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), primary_key=True)
    collection_id: Mapped[str] = mapped_column(String(64), primary_key=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Offers
# ═══════════════════════════════════════════════════════════════════════════════


class OfferTable(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("stores.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_code: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    valid_from: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    min_purchase_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    min_item_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Scope
    store_wide: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    product_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    collection_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Discount parameters
    percentage: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    buy_n: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    get_k: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingRuleTable(Base):
    __tablename__ = "shipping_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("stores.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    grouping_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    international_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Ordered list of {when: [...], base_cost, basis, modifiers: {...}}
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)


class ProductShippingRuleTable(Base):
    """At most one rule per product."""

    __tablename__ = "product_shipping_rules"

    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), primary_key=True)
    rule_id: Mapped[str] = mapped_column(ForeignKey("shipping_rules.id"), nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderTable(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("stores.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    shipping: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    discount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    gst: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    applied_offers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    delivery_address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    recipient: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class OrderItemTable(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)


class OrderStatusHistoryTable(Base):
    """Append-only; the newest row mirrors orders.status."""

    __tablename__ = "order_status_history"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout attempts
# ═══════════════════════════════════════════════════════════════════════════════


class AttemptMixin:
    """
    Claim columns for duplicate-checkout detection.

    - attempt_key: unique claim key (customer + fingerprint)
    - attempt_status: "pending" | "completed" | "failed"
    - attempt_error: last failure code
    - attempt_expires_at: end of the duplicate-blocking window
    """

    attempt_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    attempt_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    attempt_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempt_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CheckoutAttemptTable(Base, AttemptMixin):
    __tablename__ = "checkout_attempts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    store_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


__all__ = (
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
)
